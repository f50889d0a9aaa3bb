"""
Tests de efectos secundarios: webhook de notificaciones y push de estado a Previo
"""
from unittest.mock import Mock

import pytest
import requests

from models import PMSConfiguration, PMSRoomMapping, PMSSyncLog
from services.notifications import (
    PMSSyncService,
    PrevioClient,
    SideEffectRunner,
    SideEffects,
    StaffNotifier,
)
from utils.errors import SideEffectFailure


def _response(status_code=200):
    return Mock(status_code=status_code)


class TestSideEffectRunner:

    def test_inline_ejecuta_y_absorbe_errores(self):
        runner = SideEffectRunner(max_workers=0)
        ok = Mock()
        runner.submit("ok", ok, 1, clave="x")
        ok.assert_called_once_with(1, clave="x")

        runner.submit("falla", Mock(side_effect=SideEffectFailure("notify", "HTTP 500")))
        runner.submit("explota", Mock(side_effect=RuntimeError("boom")))

    def test_con_threads(self):
        runner = SideEffectRunner(max_workers=1)
        fn = Mock()
        runner.submit("thread", fn, "a")
        runner.shutdown(wait=True)
        fn.assert_called_once_with("a")

    def test_sin_staff_no_notifica(self):
        effects = SideEffects(runner=SideEffectRunner(max_workers=0), notifier=Mock(), pms_sync=Mock())
        effects.notify_assignment(None, {"ticketId": 1})
        effects.notifier.notify_assignment.assert_not_called()


class TestStaffNotifier:

    def test_sin_webhook_se_omite(self):
        http = Mock()
        StaffNotifier(webhook_url="", http=http).notify_assignment(3, {"ticketId": 1})
        http.post.assert_not_called()

    def test_envia_evento(self):
        http = Mock()
        http.post.return_value = _response(200)
        StaffNotifier(webhook_url="https://hooks.test/ops", timeout=5, http=http).notify_assignment(3, {"ticketId": 1})

        args, kwargs = http.post.call_args
        assert args[0] == "https://hooks.test/ops"
        assert kwargs["json"] == {"event": "assignment", "data": {"staffId": 3, "ticketId": 1}}
        assert kwargs["timeout"] == 5

    def test_error_http(self):
        http = Mock()
        http.post.return_value = _response(502)
        with pytest.raises(SideEffectFailure):
            StaffNotifier(webhook_url="https://hooks.test/ops", http=http).notify_ticket_closed({"ticketId": 1})

    def test_error_de_red(self):
        http = Mock()
        http.post.side_effect = requests.ConnectionError("sin red")
        with pytest.raises(SideEffectFailure):
            StaffNotifier(webhook_url="https://hooks.test/ops", http=http).notify_ticket_closed({"ticketId": 1})


class TestPrevioClient:

    def test_sin_credenciales(self):
        client = PrevioClient(api_url="https://previo.test", user="", password="", http=Mock())
        with pytest.raises(SideEffectFailure):
            client.push_room_status("PRV-1", "101", "clean")

    def test_mapea_estado_y_envia_header(self):
        http = Mock()
        http.put.return_value = _response(200)
        client = PrevioClient(api_url="https://previo.test", user="u", password="p", http=http)

        body = client.push_room_status("PRV-1", "101", "maintenance")
        assert body == {"roomNumber": "101", "status": "out_of_order"}
        kwargs = http.put.call_args.kwargs
        assert kwargs["auth"] == ("u", "p")
        assert kwargs["headers"] == {"X-Previo-Hotel-ID": "PRV-1"}

    def test_error_de_api(self):
        http = Mock()
        http.put.return_value = _response(401)
        client = PrevioClient(api_url="https://previo.test", user="u", password="p", http=http)
        with pytest.raises(SideEffectFailure):
            client.push_room_status("PRV-1", "101", "clean")


class TestPMSSyncService:

    @pytest.fixture(autouse=True)
    def setup(self, db, session_factory, hotel, room):
        self.db = db
        self.hotel = hotel
        self.room = room
        self.client = Mock()
        self.client.push_room_status.return_value = {"roomNumber": "101", "status": "clean"}
        self.service = PMSSyncService(client=self.client, session_factory=session_factory)

    def _configure(self, mapped=True, active=True):
        config = PMSConfiguration(hotel_id=self.hotel.id, pms_hotel_id="PRV-9", is_active=active)
        if mapped:
            config.room_mappings.append(PMSRoomMapping(room_number="101", pms_room_id="R-1"))
        self.db.add(config)
        self.db.commit()

    def _logs(self):
        self.db.expire_all()
        return self.db.query(PMSSyncLog).all()

    def test_sin_integracion_no_hace_nada(self):
        self.service.sync_room_status(self.room.id, "clean")
        self.client.push_room_status.assert_not_called()
        assert self._logs() == []

    def test_integracion_inactiva(self):
        self._configure(active=False)
        self.service.sync_room_status(self.room.id, "clean")
        self.client.push_room_status.assert_not_called()

    def test_habitacion_sin_mapeo_queda_omitida(self):
        self._configure(mapped=False)
        self.service.sync_room_status(self.room.id, "clean")
        self.client.push_room_status.assert_not_called()
        assert [log.status for log in self._logs()] == ["skipped"]

    def test_push_exitoso(self):
        self._configure()
        self.service.sync_room_status(self.room.id, "clean")
        self.client.push_room_status.assert_called_once_with("PRV-9", "101", "clean")
        logs = self._logs()
        assert [log.status for log in logs] == ["success"]
        assert logs[0].request_payload == {"roomNumber": "101", "status": "clean"}

    def test_push_fallido_queda_registrado(self):
        self._configure()
        self.client.push_room_status.side_effect = SideEffectFailure("pms", "Previo API error: 500")
        with pytest.raises(SideEffectFailure):
            self.service.sync_room_status(self.room.id, "clean")
        logs = self._logs()
        assert [log.status for log in logs] == ["failed"]
        assert "500" in logs[0].error
