"""
Ciclo de vida de tickets de servicio:
- SLA por prioridad (vencimiento, horas transcurridas y restantes)
- Creación, inicio, cierre y reasignación
- Flujo de aprobación del supervisor (mantenimiento)

Máquina de estados: open -> in_progress -> completed. Es monótona: un ticket
cerrado no se reabre; cualquier intento levanta InvalidTransitionError.
"""
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from database.conexion import transaction
from models.core import Hotel, Room
from models.tickets import ServiceTicket, TicketPriority, TicketStatus
from models.usuario import Department, StaffMember
from services.notifications import SideEffects
from utils.errors import InvalidTransitionError, NotFoundError, ValidationError
from utils.logging_utils import log_event
from utils.timezone import to_utc, utcnow


SLA_HOURS = {
    TicketPriority.URGENT: 2,
    TicketPriority.HIGH: 8,
    TicketPriority.MEDIUM: 24,
    TicketPriority.LOW: 72,
}


@dataclass(frozen=True)
class SLAStatus:
    sla_hours: int
    elapsed_hours: int
    is_overdue: bool
    remaining_hours: int


def _parse_priority(priority) -> TicketPriority:
    try:
        return TicketPriority(priority)
    except ValueError:
        raise ValidationError(f"Prioridad inválida: {priority}")


def sla_hours(priority) -> int:
    return SLA_HOURS[_parse_priority(priority)]


def evaluate(ticket: ServiceTicket, now: datetime) -> SLAStatus:
    """
    Horas completas transcurridas desde la creación contra el límite del SLA.
    Vencido solo si se supera estrictamente el límite.
    """
    bound = sla_hours(ticket.priority)
    elapsed = to_utc(now) - to_utc(ticket.created_at)
    elapsed_hours = math.floor(elapsed.total_seconds() / 3600)
    return SLAStatus(
        sla_hours=bound,
        elapsed_hours=elapsed_hours,
        is_overdue=elapsed_hours > bound,
        remaining_hours=max(0, bound - elapsed_hours),
    )


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _generate_ticket_number(now: datetime) -> str:
    return f"TKT-{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


class TicketLifecycleManager:
    """Reglas que gobiernan las mutaciones de ServiceTicket"""

    def __init__(self, db: Session, side_effects: SideEffects):
        self.db = db
        self.side_effects = side_effects

    # ===== LECTURA =====

    def get(self, ticket_id: int) -> ServiceTicket:
        ticket = self.db.query(ServiceTicket).filter(ServiceTicket.id == ticket_id).first()
        if not ticket:
            raise NotFoundError("Ticket", ticket_id)
        return ticket

    def pending_approval(self, organization_slug: str, hotel_id: Optional[int] = None) -> List[ServiceTicket]:
        query = self.db.query(ServiceTicket).filter(
            ServiceTicket.organization_slug == organization_slug,
            ServiceTicket.pending_supervisor_approval.is_(True),
            ServiceTicket.supervisor_approved.is_(False),
        )
        if hotel_id:
            query = query.filter(ServiceTicket.hotel_id == hotel_id)
        return query.order_by(ServiceTicket.created_at.asc()).all()

    # ===== OPERACIONES =====

    def create(
        self,
        hotel_id: int,
        title: str,
        department,
        priority=TicketPriority.MEDIUM,
        created_by: Optional[int] = None,
        room_id: Optional[int] = None,
        description: Optional[str] = None,
        assigned_to: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ServiceTicket:
        now = to_utc(now or utcnow())
        if _is_blank(title):
            raise ValidationError("El título del ticket es obligatorio")
        try:
            department = Department(department)
        except ValueError:
            raise ValidationError(f"Departamento inválido: {department}")
        priority = _parse_priority(priority)

        hotel = self.db.query(Hotel).filter(Hotel.id == hotel_id).first()
        if not hotel:
            raise NotFoundError("Hotel", hotel_id)
        if room_id is not None:
            room = self.db.query(Room).filter(Room.id == room_id, Room.hotel_id == hotel_id).first()
            if not room:
                raise NotFoundError("Habitación", room_id)
        if assigned_to is not None:
            self._get_staff(assigned_to)

        with transaction(self.db):
            ticket = ServiceTicket(
                ticket_number=_generate_ticket_number(now),
                title=title.strip(),
                description=description,
                priority=priority,
                status=TicketStatus.OPEN,
                department=department,
                hotel_id=hotel.id,
                room_id=room_id,
                organization_slug=hotel.organization_slug,
                created_by=created_by,
                created_at=now,
                sla_due_date=now + timedelta(hours=SLA_HOURS[priority]),
                assigned_to=assigned_to,
            )
            self.db.add(ticket)

        self.db.refresh(ticket)
        log_event("tickets", created_by, "Crear ticket", f"ticket={ticket.ticket_number} prioridad={priority.value}")
        self.side_effects.notify_assignment(assigned_to, self._notification_payload(ticket))
        return ticket

    def start(self, ticket_id: int, staff_id: int) -> ServiceTicket:
        ticket = self.get(ticket_id)
        self._ensure_not_closed(ticket, "iniciar")
        if ticket.status != TicketStatus.OPEN:
            raise InvalidTransitionError(f"Ticket {ticket.ticket_number} ya está en progreso")
        self._get_staff(staff_id)

        with transaction(self.db):
            if ticket.assigned_to is None:
                ticket.assigned_to = staff_id
            ticket.status = TicketStatus.IN_PROGRESS

        self.db.refresh(ticket)
        log_event("tickets", staff_id, "Iniciar ticket", f"ticket={ticket.ticket_number}")
        return ticket

    def close(
        self,
        ticket_id: int,
        resolution_text: Optional[str],
        breach_reason: Optional[str] = None,
        closed_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ServiceTicket:
        now = to_utc(now or utcnow())
        ticket = self.get(ticket_id)
        self._ensure_not_closed(ticket, "cerrar")

        with transaction(self.db):
            self._apply_close(ticket, resolution_text, breach_reason, closed_by, now)

        self.db.refresh(ticket)
        log_event("tickets", closed_by, "Cerrar ticket", f"ticket={ticket.ticket_number}")
        self.side_effects.notify_ticket_closed(self._closed_payload(ticket))
        return ticket

    def reassign(self, ticket_id: int, staff_id: int) -> ServiceTicket:
        ticket = self.get(ticket_id)
        self._get_staff(staff_id)

        with transaction(self.db):
            ticket.assigned_to = staff_id

        self.db.refresh(ticket)
        log_event("tickets", staff_id, "Reasignar ticket", f"ticket={ticket.ticket_number}")
        self.side_effects.notify_assignment(staff_id, self._notification_payload(ticket))
        return ticket

    def submit_for_approval(
        self,
        ticket_id: int,
        resolution_text: Optional[str],
        breach_reason: Optional[str] = None,
        staff_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ServiceTicket:
        """
        El técnico termina el trabajo; el ticket sigue in_progress hasta que
        el supervisor lo apruebe.
        """
        now = to_utc(now or utcnow())
        ticket = self.get(ticket_id)
        self._ensure_not_closed(ticket, "enviar a aprobación")
        self._validate_resolution(ticket, resolution_text, breach_reason, now)

        with transaction(self.db):
            ticket.status = TicketStatus.IN_PROGRESS
            ticket.resolution_text = resolution_text.strip()
            if not _is_blank(breach_reason):
                ticket.sla_breach_reason = breach_reason.strip()
            ticket.pending_supervisor_approval = True

        self.db.refresh(ticket)
        log_event("tickets", staff_id, "Enviar a aprobación", f"ticket={ticket.ticket_number}")
        return ticket

    def approve(
        self,
        ticket_id: int,
        approver_id: int,
        now: Optional[datetime] = None,
        breach_reason: Optional[str] = None,
    ) -> ServiceTicket:
        """
        Cierra un ticket pendiente de aprobación. Si al aprobar ya venció el
        SLA, breach_reason reemplaza al motivo cargado por el técnico.
        """
        now = to_utc(now or utcnow())
        ticket = self.get(ticket_id)
        self._ensure_not_closed(ticket, "aprobar")
        if not ticket.pending_supervisor_approval:
            raise InvalidTransitionError(f"Ticket {ticket.ticket_number} no está pendiente de aprobación")

        with transaction(self.db):
            reason = ticket.sla_breach_reason if _is_blank(breach_reason) else breach_reason
            self._apply_close(ticket, ticket.resolution_text, reason, approver_id, now)
            ticket.supervisor_approved = True
            ticket.supervisor_approved_by = approver_id
            ticket.supervisor_approved_at = now

        self.db.refresh(ticket)
        log_event("tickets", approver_id, "Aprobar ticket", f"ticket={ticket.ticket_number}")
        self.side_effects.notify_ticket_closed(self._closed_payload(ticket))
        return ticket

    # ===== HELPERS =====

    def _get_staff(self, staff_id: int) -> StaffMember:
        staff = self.db.query(StaffMember).filter(StaffMember.id == staff_id).first()
        if not staff:
            raise NotFoundError("Staff", staff_id)
        return staff

    @staticmethod
    def _ensure_not_closed(ticket: ServiceTicket, accion: str) -> None:
        if ticket.status == TicketStatus.COMPLETED:
            raise InvalidTransitionError(
                f"Ticket {ticket.ticket_number} está cerrado: no se puede {accion}"
            )

    @staticmethod
    def _validate_resolution(ticket: ServiceTicket, resolution_text, breach_reason, now: datetime) -> None:
        if _is_blank(resolution_text):
            raise ValidationError("Debe indicar la resolución antes de cerrar el ticket")
        if evaluate(ticket, now).is_overdue and _is_blank(breach_reason):
            raise ValidationError("El ticket superó el SLA: debe indicar el motivo del incumplimiento")

    def _apply_close(self, ticket: ServiceTicket, resolution_text, breach_reason, closed_by, now: datetime) -> None:
        self._validate_resolution(ticket, resolution_text, breach_reason, now)
        ticket.status = TicketStatus.COMPLETED
        ticket.closed_at = now
        ticket.closed_by = closed_by
        ticket.resolution_text = resolution_text.strip()
        if not _is_blank(breach_reason):
            ticket.sla_breach_reason = breach_reason.strip()
        ticket.pending_supervisor_approval = False

    @staticmethod
    def _notification_payload(ticket: ServiceTicket) -> dict:
        return {
            "type": "ticket",
            "ticketId": ticket.id,
            "ticketNumber": ticket.ticket_number,
            "title": ticket.title,
            "priority": ticket.priority.value,
            "hotelId": ticket.hotel_id,
            "roomId": ticket.room_id,
        }

    @staticmethod
    def _closed_payload(ticket: ServiceTicket) -> dict:
        return {
            "ticketId": ticket.id,
            "ticketNumber": ticket.ticket_number,
            "title": ticket.title,
            "resolutionText": ticket.resolution_text,
            "closedBy": ticket.closed_by,
            "hotelId": ticket.hotel_id,
            "roomId": ticket.room_id,
        }
