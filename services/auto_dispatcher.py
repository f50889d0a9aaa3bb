"""
Auto dispatch de tickets viejos sin asignar.

Al iniciar sesión (y cada AUTO_DISPATCH_INTERVAL_SECONDS mientras la sesión
siga activa) se le asigna al staff el ticket abierto más antiguo de sus
departamentos que lleve más de STALE_TICKET_HOURS sin dueño.

El reclamo es un UPDATE condicional (assigned_to IS NULL AND status = 'open'):
si dos sesiones compiten por el mismo ticket, solo una actualiza la fila.
El ticket reclamado queda asignado y pasa a in_progress.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Callable, Optional, Set

from sqlalchemy.orm import Session

import config
from database.conexion import SessionLocal, transaction
from models.tickets import ServiceTicket, TicketStatus
from models.usuario import Department, StaffMember, StaffRole
from services.notifications import SideEffects, get_side_effects
from utils.errors import NotFoundError
from utils.logging_utils import log_event
from utils.timezone import to_utc, utcnow

logger = logging.getLogger(__name__)


_HOUSEKEEPING_SCOPE = frozenset({Department.HOUSEKEEPING, Department.MAINTENANCE})

# Rol -> departamentos cuyos tickets puede recibir automáticamente
ELIGIBLE_DEPARTMENTS = MappingProxyType({
    StaffRole.HOUSEKEEPING: _HOUSEKEEPING_SCOPE,
    StaffRole.HOUSEKEEPING_MANAGER: _HOUSEKEEPING_SCOPE,
    StaffRole.MAINTENANCE: frozenset({Department.MAINTENANCE}),
    StaffRole.MAINTENANCE_MANAGER: frozenset({Department.MAINTENANCE}),
    StaffRole.RECEPTION: frozenset({Department.RECEPTION}),
    StaffRole.RECEPTION_MANAGER: frozenset({Department.RECEPTION}),
    StaffRole.MARKETING: frozenset({Department.MARKETING}),
    StaffRole.MARKETING_MANAGER: frozenset({Department.MARKETING}),
    StaffRole.BACK_OFFICE_MANAGER: frozenset({Department.BACK_OFFICE}),
    StaffRole.CONTROL_MANAGER: frozenset({Department.CONTROL}),
    StaffRole.FINANCE_MANAGER: frozenset({Department.FINANCE}),
    StaffRole.TOP_MANAGEMENT_MANAGER: frozenset({Department.TOP_MANAGEMENT}),
    StaffRole.MANAGER: frozenset(),
    StaffRole.ADMIN: frozenset(),
})


def eligible_departments(role) -> frozenset:
    try:
        return ELIGIBLE_DEPARTMENTS.get(StaffRole(role), frozenset())
    except ValueError:
        return frozenset()


class AutoDispatcher:

    def __init__(self, db: Session, side_effects: SideEffects):
        self.db = db
        self.side_effects = side_effects

    def dispatch_for(self, staff_id: int, now: Optional[datetime] = None, login: bool = False) -> Optional[ServiceTicket]:
        """
        Reclama a lo sumo un ticket para staff_id. Devuelve el ticket
        reclamado o None si no había candidatos (o todos fueron tomados).
        """
        now = to_utc(now or utcnow())
        staff = self.db.query(StaffMember).filter(StaffMember.id == staff_id).first()
        if not staff:
            raise NotFoundError("Staff", staff_id)

        if login:
            with transaction(self.db):
                staff.last_login = now

        if not staff.activo:
            return None
        departments = eligible_departments(staff.role)
        if not departments:
            return None

        cutoff = now - timedelta(hours=config.STALE_TICKET_HOURS)
        candidates = (
            self.db.query(ServiceTicket.id)
            .filter(
                ServiceTicket.assigned_to.is_(None),
                ServiceTicket.status == TicketStatus.OPEN,
                ServiceTicket.department.in_(list(departments)),
                ServiceTicket.organization_slug == staff.organization_slug,
                ServiceTicket.created_at < cutoff,
            )
            .order_by(ServiceTicket.created_at.asc(), ServiceTicket.id.asc())
            .limit(config.DISPATCH_MAX_CANDIDATES)
            .all()
        )

        for (ticket_id,) in candidates:
            if not self._claim(ticket_id, staff.id, now):
                # otra sesión lo tomó primero
                continue
            ticket = self.db.query(ServiceTicket).filter(ServiceTicket.id == ticket_id).first()
            self.db.refresh(ticket)
            log_event("dispatch", staff.username, "Auto asignar ticket", f"ticket={ticket.ticket_number}")
            self.side_effects.notify_assignment(staff.id, {
                "type": "ticket",
                "ticketId": ticket.id,
                "ticketNumber": ticket.ticket_number,
                "title": ticket.title,
                "priority": ticket.priority.value,
                "hotelId": ticket.hotel_id,
                "roomId": ticket.room_id,
                "autoDispatched": True,
            })
            return ticket
        return None

    def _claim(self, ticket_id: int, staff_id: int, now: datetime) -> bool:
        with transaction(self.db):
            updated = (
                self.db.query(ServiceTicket)
                .filter(
                    ServiceTicket.id == ticket_id,
                    ServiceTicket.assigned_to.is_(None),
                    ServiceTicket.status == TicketStatus.OPEN,
                )
                .update(
                    {
                        ServiceTicket.assigned_to: staff_id,
                        ServiceTicket.status: TicketStatus.IN_PROGRESS,
                        ServiceTicket.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )
        return updated == 1


class DispatchScheduler:
    """
    Una sola tarea asyncio por proceso que recorre las sesiones activas en
    serie. register() despacha de inmediato; unregister() saca al staff de
    la próxima vuelta.
    """

    def __init__(
        self,
        side_effects_factory: Callable[[], SideEffects],
        session_factory=None,
        interval_seconds: float = None,
    ):
        self.side_effects_factory = side_effects_factory
        self.session_factory = session_factory or SessionLocal
        self.interval_seconds = interval_seconds or config.AUTO_DISPATCH_INTERVAL_SECONDS
        self.sessions: Set[int] = set()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Dispatch scheduler started (every %s seconds)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Dispatch scheduler stopped")

    def register(self, staff_id: int, now: Optional[datetime] = None) -> Optional[ServiceTicket]:
        """Alta de sesión: login + dispatch inmediato"""
        ticket = self.run_once(staff_id, now=now, login=True)
        self.sessions.add(staff_id)
        return ticket

    def unregister(self, staff_id: int) -> None:
        self.sessions.discard(staff_id)
        log_event("dispatch", staff_id, "Fin de sesión", "sin más auto dispatch")

    def run_once(self, staff_id: int, now: Optional[datetime] = None, login: bool = False) -> Optional[ServiceTicket]:
        db = self.session_factory()
        try:
            ticket = AutoDispatcher(db, self.side_effects_factory()).dispatch_for(staff_id, now=now, login=login)
            if ticket is not None:
                db.expunge(ticket)
            return ticket
        finally:
            db.close()

    def tick(self, now: Optional[datetime] = None) -> int:
        """Una vuelta sobre todas las sesiones; devuelve cuántos tickets se asignaron"""
        claimed = 0
        for staff_id in sorted(self.sessions):
            try:
                if self.run_once(staff_id, now=now) is not None:
                    claimed += 1
            except NotFoundError:
                self.sessions.discard(staff_id)
            except Exception as e:
                logger.warning(f"Auto dispatch error for staff {staff_id}: {e}")
        return claimed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            claimed = await asyncio.to_thread(self.tick)
            if claimed:
                logger.info(f"Auto dispatch: {claimed} tickets assigned")


_scheduler: Optional[DispatchScheduler] = None


def get_dispatch_scheduler() -> DispatchScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = DispatchScheduler(get_side_effects)
    return _scheduler
