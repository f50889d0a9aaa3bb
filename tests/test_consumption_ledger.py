"""
Tests del libro de consumos de minibar
Prioridad de fuentes, ventana de estadía y liquidación del día anterior
"""
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest

from models import ConsumptionRecord, ConsumptionSource
from services.consumption_ledger import (
    ConsumptionLedger,
    format_total,
    stay_lookback_days,
    summarize,
    total,
)
from utils.errors import AlreadyRecordedError, ConflictError, NotFoundError, ValidationError

DAY = date(2025, 3, 10)


class TestHelpers:

    @pytest.mark.parametrize("nights, expected", [(None, 1), (0, 1), (1, 1), (3, 3), (30, 30), (45, 30)])
    def test_ventana_de_estadia(self, nights, expected):
        assert stay_lookback_days(nights) == expected

    def test_format_total_redondea_solo_al_mostrar(self):
        assert format_total(Decimal("8.745")) == "8.75"
        assert format_total(Decimal("0")) == "0.00"


class TestRecord:

    @pytest.fixture(autouse=True)
    def setup(self, db, room, make_item, make_staff, now):
        self.db = db
        self.room = room
        self.agua = make_item("Agua", "2.50")
        self.maria = make_staff("maria")
        self.now = now
        self.ledger = ConsumptionLedger(db)

    def _record(self, source, quantity=1, item=None, now=None):
        return self.ledger.record(self.room.id, (item or self.agua).id, quantity, source, now=now or self.now)

    def test_primer_registro(self):
        outcome = self._record("guest", 1)
        assert outcome.action == "created"
        assert outcome.record.source == ConsumptionSource.GUEST
        assert outcome.record.usage_day == DAY
        assert outcome.record.organization_slug == "grupo-sur"

    def test_staff_corrige_al_huesped_y_recepcion_no_pisa(self):
        self._record("guest", 1)
        outcome = self.ledger.record(self.room.id, self.agua.id, 2, "staff", now=self.now, recorded_by=self.maria.id)
        assert outcome.action == "overridden"
        assert outcome.record.quantity_used == 2
        assert outcome.record.source == ConsumptionSource.STAFF
        assert outcome.record.recorded_by == self.maria.id

        with pytest.raises(AlreadyRecordedError) as exc:
            self._record("reception", 5)
        assert exc.value.existing_source == "staff"
        assert "staff" in str(exc.value)

        records = self.db.query(ConsumptionRecord).all()
        assert len(records) == 1
        assert records[0].quantity_used == 2

    def test_huesped_no_pisa_al_huesped(self):
        self._record("guest", 1)
        with pytest.raises(AlreadyRecordedError) as exc:
            self._record("guest", 3)
        assert exc.value.existing_source == "guest"

    def test_huesped_no_pisa_al_staff(self):
        self._record("staff", 1)
        with pytest.raises(AlreadyRecordedError):
            self._record("guest", 4)

    def test_otro_dia_es_otro_registro(self):
        self._record("staff", 1)
        outcome = self._record("staff", 1, now=self.now + timedelta(days=1))
        assert outcome.action == "created"
        assert self.db.query(ConsumptionRecord).count() == 2

    @pytest.mark.parametrize("quantity", [0, -1, None])
    def test_cantidad_invalida(self, quantity):
        with pytest.raises(ValidationError):
            self._record("staff", quantity)

    def test_sin_habitacion_o_item(self):
        with pytest.raises(ValidationError):
            self.ledger.record(None, self.agua.id, 1, "staff", now=self.now)
        with pytest.raises(ValidationError):
            self.ledger.record(self.room.id, None, 1, "staff", now=self.now)

    def test_origen_invalido(self):
        with pytest.raises(ValidationError):
            self._record("housekeeping")

    def test_habitacion_inexistente(self):
        with pytest.raises(NotFoundError):
            self.ledger.record(999, self.agua.id, 1, "staff", now=self.now)

    def test_item_inactivo(self, make_item):
        viejo = make_item("Gaseosa vieja", "1.00", is_active=False)
        with pytest.raises(ValidationError):
            self._record("staff", 1, item=viejo)

    def test_insert_concurrente_se_resuelve_contra_el_ganador(self):
        # otra sesión insertó entre la lectura y el insert
        existing = self._record("staff", 2).record
        with patch.object(self.ledger, "_active_record", side_effect=[None, existing]):
            with pytest.raises(AlreadyRecordedError) as exc:
                self._record("reception", 1)
        assert exc.value.existing_source == "staff"
        assert self.db.query(ConsumptionRecord).count() == 1

    def test_insert_concurrente_del_huesped_se_corrige(self):
        existing = self._record("guest", 1).record
        with patch.object(self.ledger, "_active_record", side_effect=[None, existing]):
            outcome = self._record("staff", 3)
        assert outcome.action == "overridden"
        assert outcome.record.quantity_used == 3

    def test_correccion_concurrente_perdida(self):
        self._record("guest", 1)
        with patch.object(self.ledger, "_try_override", return_value=False):
            with pytest.raises(ConflictError):
                self._record("staff", 2)


class TestGuestSubmission:

    @pytest.fixture(autouse=True)
    def setup(self, db, room, make_item, now):
        self.db = db
        self.room = room
        self.agua = make_item("Agua", "2.50")
        self.cerveza = make_item("Cerveza", "3.75")
        self.now = now
        self.ledger = ConsumptionLedger(db)

    def test_carga_por_qr(self):
        result = self.ledger.submit_guest("qr-101", [(self.agua.id, 2), (self.cerveza.id, 1)], now=self.now)
        assert result.inserted == 2
        assert result.skipped == 0
        assert result.room_number == "101"

        again = self.ledger.submit_guest("qr-101", [(self.agua.id, 1)], now=self.now)
        assert again.inserted == 0
        assert again.skipped == 1

    def test_qr_desconocido(self):
        with pytest.raises(NotFoundError):
            self.ledger.submit_guest("qr-999", [(self.agua.id, 1)], now=self.now)

    @pytest.mark.parametrize("quantity", [0, 51])
    def test_cantidad_fuera_de_rango_no_carga_nada(self, quantity):
        with pytest.raises(ValidationError):
            self.ledger.submit_guest("qr-101", [(self.agua.id, 1), (self.cerveza.id, quantity)], now=self.now)
        assert self.db.query(ConsumptionRecord).count() == 0

    def test_sin_items(self):
        with pytest.raises(ValidationError):
            self.ledger.submit_guest("qr-101", [], now=self.now)


class TestStayWindow:

    @pytest.fixture(autouse=True)
    def setup(self, db, make_room, make_item, now):
        self.db = db
        self.room = make_room("301", nights=3)
        self.single = make_room("302", nights=1)
        self.agua = make_item("Agua", "2.50")
        self.cerveza = make_item("Cerveza", "3.75")
        self.now = now
        self.ledger = ConsumptionLedger(db)

    def _on(self, room, days_ago, item=None, quantity=1):
        return self.ledger.record(
            room.id, (item or self.agua).id, quantity, "staff",
            now=self.now - timedelta(days=days_ago),
        ).record

    def _clear(self, record):
        record.is_cleared = True
        self.db.commit()

    def test_incluye_noches_anteriores_sin_liquidar(self):
        today = self._on(self.room, 0)
        yesterday = self._on(self.room, 1)
        two_days = self._on(self.room, 2)
        self._on(self.room, 3)
        cleared = self._on(self.room, 1, item=self.cerveza)
        self._clear(cleared)

        records = self.ledger.for_stay(self.room.id, DAY)
        ids = [r.id for r in records]
        assert sorted(ids) == sorted([today.id, yesterday.id, two_days.id])
        assert len(ids) == len(set(ids))

    def test_el_dia_seleccionado_incluye_liquidados(self):
        today = self._on(self.room, 0)
        self._clear(today)
        assert [r.id for r in self.ledger.for_stay(self.room.id, DAY)] == [today.id]

    def test_una_noche_solo_el_dia(self):
        today = self._on(self.single, 0)
        self._on(self.single, 1)
        assert [r.id for r in self.ledger.for_stay(self.single.id, DAY)] == [today.id]

    def test_varias_habitaciones_cada_una_con_su_ventana(self):
        self._on(self.room, 2)
        self._on(self.single, 2)
        single_today = self._on(self.single, 0)

        by_room = self.ledger.for_stays([self.room.id, self.single.id], DAY)
        assert len(by_room[self.room.id]) == 1
        assert [r.id for r in by_room[self.single.id]] == [single_today.id]

    def test_habitacion_inexistente(self):
        with pytest.raises(NotFoundError):
            self.ledger.for_stay(999, DAY)

    def test_totales(self):
        self._on(self.room, 0, quantity=2)
        self._on(self.room, 1, item=self.cerveza)
        records = self.ledger.for_stay(self.room.id, DAY)

        assert total(records) == Decimal("8.75")
        summary = summarize(records)
        assert summary.total_items == 3
        assert summary.rooms_with_usage == 1


class TestClearPreviousDay:

    @pytest.fixture(autouse=True)
    def setup(self, db, hotel, room, make_item, now):
        self.db = db
        self.hotel = hotel
        self.room = room
        self.agua = make_item("Agua", "2.50")
        self.now = now
        self.ledger = ConsumptionLedger(db)

    def test_liquida_solo_ayer_y_es_idempotente(self):
        # 02:00 UTC del 10/03 son las 23:00 del 09/03 en Buenos Aires
        late_yesterday = self.ledger.record(
            self.room.id, self.agua.id, 1, "staff", now=self.now.replace(hour=2)
        ).record
        today = self.ledger.record(self.room.id, self.agua.id, 1, "staff", now=self.now).record
        assert late_yesterday.usage_day == date(2025, 3, 9)

        assert self.ledger.clear_previous_day(self.hotel.id, now=self.now) == 1
        assert self.ledger.clear_previous_day(self.hotel.id, now=self.now) == 0

        self.db.expire_all()
        assert self.db.get(ConsumptionRecord, late_yesterday.id).is_cleared is True
        assert self.db.get(ConsumptionRecord, today.id).is_cleared is False

    def test_hotel_inexistente(self):
        with pytest.raises(NotFoundError):
            self.ledger.clear_previous_day(999, now=self.now)
