"""
Efectos secundarios salientes (fire-and-forget):
- Notificación de asignación al personal
- Aviso a gerencia de ticket cerrado
- Push de estado de habitación al PMS (Previo)

Ningún error de estos canales revierte la operación principal: el
SideEffectRunner los captura y los loguea.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional

import requests
from sqlalchemy.orm import Session, sessionmaker

import config
from database.conexion import SessionLocal
from models.core import Room, PMSSyncLog
from utils.errors import SideEffectFailure
from utils.logging_utils import log_event, log_error


class SideEffectRunner:
    """
    Ejecuta callables best-effort. Con max_workers=0 corre inline (tests y
    scheduler); si no, en un ThreadPoolExecutor para no bloquear el request.
    """

    def __init__(self, max_workers: int = config.SIDE_EFFECT_WORKERS):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="side-effect") if max_workers else None

    def submit(self, label: str, fn: Callable, *args, **kwargs) -> None:
        if self._executor is None:
            self._run(label, fn, args, kwargs)
        else:
            self._executor.submit(self._run, label, fn, args, kwargs)

    @staticmethod
    def _run(label: str, fn: Callable, args, kwargs) -> None:
        try:
            fn(*args, **kwargs)
        except SideEffectFailure as e:
            log_error("side_effect", None, label, str(e))
        except Exception as e:  # cualquier falla del canal externo queda solo en el log
            log_error("side_effect", None, label, f"error inesperado: {e!r}")

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)


class StaffNotifier:
    """Cliente del webhook de notificaciones internas"""

    def __init__(self, webhook_url: str = None, timeout: float = None, http=None):
        self.webhook_url = webhook_url if webhook_url is not None else config.NOTIFICATION_WEBHOOK_URL
        self.timeout = timeout or config.SIDE_EFFECT_TIMEOUT_SECONDS
        self.http = http or requests

    def notify_assignment(self, staff_id: int, payload: dict) -> None:
        self._post("assignment", {"staffId": staff_id, **payload})

    def notify_ticket_closed(self, payload: dict) -> None:
        self._post("ticket_closed", payload)

    def _post(self, event: str, body: dict) -> None:
        if not self.webhook_url:
            log_event("notify", None, "Notificación omitida", f"event={event} sin webhook configurado")
            return
        try:
            response = self.http.post(
                self.webhook_url,
                json={"event": event, "data": body},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SideEffectFailure("notify", str(e))
        if response.status_code >= 400:
            raise SideEffectFailure("notify", f"HTTP {response.status_code}")
        log_event("notify", None, "Notificación enviada", f"event={event}")


class PrevioClient:
    """REST API de housekeeping de Previo"""

    STATUS_MAP = {
        "clean": "clean",
        "dirty": "dirty",
        "out_of_order": "out_of_order",
        "maintenance": "out_of_order",
    }

    def __init__(self, api_url: str = None, user: str = None, password: str = None, timeout: float = None, http=None):
        self.api_url = api_url or config.PREVIO_API_URL
        self.user = user if user is not None else config.PREVIO_API_USER
        self.password = password if password is not None else config.PREVIO_API_PASSWORD
        self.timeout = timeout or config.SIDE_EFFECT_TIMEOUT_SECONDS
        self.http = http or requests

    def push_room_status(self, pms_hotel_id: str, room_number: str, status: str) -> dict:
        if not (self.user and self.password):
            raise SideEffectFailure("pms", "credenciales de Previo no configuradas")

        body = {"roomNumber": room_number, "status": self.STATUS_MAP.get(status, status)}
        try:
            response = self.http.put(
                self.api_url,
                json=body,
                auth=(self.user, self.password),
                headers={"X-Previo-Hotel-ID": pms_hotel_id},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SideEffectFailure("pms", str(e))
        if response.status_code >= 400:
            raise SideEffectFailure("pms", f"Previo API error: {response.status_code}")
        return body


class PMSSyncService:
    """
    Push best-effort del estado de una habitación al PMS. Usa su propia
    sesión porque corre después del commit de la operación principal.
    """

    def __init__(self, client: PrevioClient = None, session_factory: sessionmaker = None):
        self.client = client or PrevioClient()
        self.session_factory = session_factory or SessionLocal

    def sync_room_status(self, room_id: int, status: str) -> None:
        db: Session = self.session_factory()
        try:
            room = db.query(Room).filter(Room.id == room_id).first()
            if not room:
                raise SideEffectFailure("pms", f"habitación {room_id} no encontrada")

            pms_config = room.hotel.pms_configuration if room.hotel else None
            if not pms_config or not pms_config.is_active:
                log_event("pms", None, "Sync omitido", f"hotel={room.hotel_id} sin integración activa")
                return

            mapping = pms_config.pms_room_for(room.room_number)
            if not mapping:
                self._log(db, room, "skipped", None, "habitación sin mapeo en el PMS")
                log_event("pms", None, "Sync omitido", f"room={room.room_number} sin mapeo")
                return

            try:
                payload = self.client.push_room_status(pms_config.pms_hotel_id, room.room_number, status)
            except SideEffectFailure as e:
                self._log(db, room, "failed", {"roomNumber": room.room_number, "status": status}, str(e))
                raise

            self._log(db, room, "success", payload, None)
            log_event("pms", None, "Estado enviado a PMS", f"room={room.room_number} status={status}")
        finally:
            db.close()

    @staticmethod
    def _log(db: Session, room: Room, sync_status: str, payload: Optional[dict], error: Optional[str]) -> None:
        db.add(PMSSyncLog(
            hotel_id=room.hotel_id,
            room_id=room.id,
            status=sync_status,
            request_payload=payload,
            error=error,
        ))
        db.commit()


@dataclass
class SideEffects:
    runner: SideEffectRunner
    notifier: StaffNotifier
    pms_sync: PMSSyncService

    def notify_assignment(self, staff_id: Optional[int], payload: dict) -> None:
        if staff_id is None:
            return
        self.runner.submit("notify_assignment", self.notifier.notify_assignment, staff_id, payload)

    def notify_ticket_closed(self, payload: dict) -> None:
        self.runner.submit("notify_ticket_closed", self.notifier.notify_ticket_closed, payload)

    def push_room_status(self, room_id: int, status: str) -> None:
        self.runner.submit("pms_room_status", self.pms_sync.sync_room_status, room_id, status)


_side_effects: Optional[SideEffects] = None


def get_side_effects() -> SideEffects:
    """Dependencia FastAPI: bundle compartido de canales salientes"""
    global _side_effects
    if _side_effects is None:
        _side_effects = SideEffects(
            runner=SideEffectRunner(),
            notifier=StaffNotifier(),
            pms_sync=PMSSyncService(),
        )
    return _side_effects


def shutdown_side_effects() -> None:
    global _side_effects
    if _side_effects is not None:
        _side_effects.runner.shutdown(wait=False)
        _side_effects = None
