from typing import Optional

from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.orm import Session

from database import conexion
from models.tickets import TicketPriority
from schemas.tickets import (
    TicketCreate,
    TicketStart,
    TicketClose,
    TicketSubmitApproval,
    TicketApprove,
    TicketAssignee,
    TicketRead,
    SLAStatusRead,
    SLAHoursRead,
)
from services.notifications import SideEffects, get_side_effects
from services.ticket_lifecycle import TicketLifecycleManager, evaluate, sla_hours
from utils.errors import OperationError, to_http_exception
from utils.timezone import utcnow

router = APIRouter(prefix="/tickets", tags=["Tickets"])


def _manager(
    db: Session = Depends(conexion.get_db),
    side_effects: SideEffects = Depends(get_side_effects),
) -> TicketLifecycleManager:
    return TicketLifecycleManager(db, side_effects)


# ===== SLA =====

@router.get("/sla/{priority}", response_model=SLAHoursRead)
def obtener_sla(priority: TicketPriority):
    """Horas de SLA para una prioridad"""
    return SLAHoursRead(priority=priority, sla_hours=sla_hours(priority))


@router.get("/pending-approval", response_model=list[TicketRead])
def tickets_pendientes_aprobacion(
    organization_slug: str = Query(..., min_length=1),
    hotel_id: Optional[int] = Query(None, gt=0),
    manager: TicketLifecycleManager = Depends(_manager),
):
    """Tickets de mantenimiento terminados que esperan al supervisor"""
    return manager.pending_approval(organization_slug, hotel_id)


# ===== TICKETS =====

@router.post("", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
def crear_ticket(payload: TicketCreate, manager: TicketLifecycleManager = Depends(_manager)):
    try:
        return manager.create(
            hotel_id=payload.hotel_id,
            title=payload.title,
            department=payload.department,
            priority=payload.priority,
            created_by=payload.created_by,
            room_id=payload.room_id,
            description=payload.description,
            assigned_to=payload.assigned_to,
        )
    except OperationError as e:
        raise to_http_exception(e)


@router.get("/{ticket_id}", response_model=TicketRead)
def obtener_ticket(ticket_id: int = Path(..., gt=0), manager: TicketLifecycleManager = Depends(_manager)):
    try:
        return manager.get(ticket_id)
    except OperationError as e:
        raise to_http_exception(e)


@router.get("/{ticket_id}/sla", response_model=SLAStatusRead)
def estado_sla(ticket_id: int = Path(..., gt=0), manager: TicketLifecycleManager = Depends(_manager)):
    """Horas transcurridas, restantes y si el ticket está vencido"""
    try:
        ticket = manager.get(ticket_id)
    except OperationError as e:
        raise to_http_exception(e)
    return evaluate(ticket, ticket.closed_at or utcnow())


@router.post("/{ticket_id}/start", response_model=TicketRead)
def iniciar_ticket(
    payload: TicketStart,
    ticket_id: int = Path(..., gt=0),
    manager: TicketLifecycleManager = Depends(_manager),
):
    try:
        return manager.start(ticket_id, payload.staff_id)
    except OperationError as e:
        raise to_http_exception(e)


@router.post("/{ticket_id}/close", response_model=TicketRead)
def cerrar_ticket(
    payload: TicketClose,
    ticket_id: int = Path(..., gt=0),
    manager: TicketLifecycleManager = Depends(_manager),
):
    """Cierra el ticket; si venció el SLA exige el motivo del incumplimiento"""
    try:
        return manager.close(ticket_id, payload.resolution_text, payload.breach_reason, payload.closed_by)
    except OperationError as e:
        raise to_http_exception(e)


@router.put("/{ticket_id}/assignee", response_model=TicketRead)
def reasignar_ticket(
    payload: TicketAssignee,
    ticket_id: int = Path(..., gt=0),
    manager: TicketLifecycleManager = Depends(_manager),
):
    try:
        return manager.reassign(ticket_id, payload.staff_id)
    except OperationError as e:
        raise to_http_exception(e)


@router.post("/{ticket_id}/submit-approval", response_model=TicketRead)
def enviar_a_aprobacion(
    payload: TicketSubmitApproval,
    ticket_id: int = Path(..., gt=0),
    manager: TicketLifecycleManager = Depends(_manager),
):
    try:
        return manager.submit_for_approval(ticket_id, payload.resolution_text, payload.breach_reason, payload.staff_id)
    except OperationError as e:
        raise to_http_exception(e)


@router.post("/{ticket_id}/approve", response_model=TicketRead)
def aprobar_ticket(
    payload: TicketApprove,
    ticket_id: int = Path(..., gt=0),
    manager: TicketLifecycleManager = Depends(_manager),
):
    try:
        return manager.approve(ticket_id, payload.approver_id, breach_reason=payload.breach_reason)
    except OperationError as e:
        raise to_http_exception(e)
