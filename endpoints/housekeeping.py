from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.orm import Session

from database import conexion
from schemas.housekeeping import (
    AssignmentCreate,
    AssignmentStart,
    AssignmentComplete,
    AssignmentApprove,
    AssignmentReassign,
    AssignmentDetalle,
)
from services.cleaning_assignments import CleaningAssignmentCoordinator
from services.notifications import SideEffects, get_side_effects
from utils.errors import OperationError, to_http_exception
from utils.timezone import get_hotel_now

router = APIRouter(prefix="/housekeeping", tags=["Housekeeping"])


def _coordinator(
    db: Session = Depends(conexion.get_db),
    side_effects: SideEffects = Depends(get_side_effects),
) -> CleaningAssignmentCoordinator:
    return CleaningAssignmentCoordinator(db, side_effects)


# ===== ASIGNACIONES =====

@router.post("/assignments", response_model=AssignmentDetalle, status_code=status.HTTP_201_CREATED)
def crear_asignacion(payload: AssignmentCreate, coordinator: CleaningAssignmentCoordinator = Depends(_coordinator)):
    try:
        return coordinator.create(
            room_id=payload.room_id,
            assigned_to=payload.assigned_to,
            assignment_date=payload.assignment_date,
            assignment_type=payload.assignment_type,
            assigned_by=payload.assigned_by,
            priority=payload.priority,
            notes=payload.notes,
        )
    except OperationError as e:
        raise to_http_exception(e)


@router.post("/assignments/{assignment_id}/start", response_model=AssignmentDetalle)
def iniciar_limpieza(
    payload: AssignmentStart,
    assignment_id: int = Path(..., gt=0),
    coordinator: CleaningAssignmentCoordinator = Depends(_coordinator),
):
    try:
        return coordinator.start(assignment_id, payload.staff_id)
    except OperationError as e:
        raise to_http_exception(e)


@router.post("/assignments/{assignment_id}/complete", response_model=AssignmentDetalle)
def finalizar_limpieza(
    payload: AssignmentComplete,
    assignment_id: int = Path(..., gt=0),
    coordinator: CleaningAssignmentCoordinator = Depends(_coordinator),
):
    """La limpieza pasa a la cola de aprobación del supervisor"""
    try:
        return coordinator.complete(assignment_id, payload.staff_id, notes=payload.notes)
    except OperationError as e:
        raise to_http_exception(e)


# ===== SUPERVISOR =====

@router.post("/assignments/{assignment_id}/approve", response_model=AssignmentDetalle)
def aprobar_limpieza(
    payload: AssignmentApprove,
    assignment_id: int = Path(..., gt=0),
    coordinator: CleaningAssignmentCoordinator = Depends(_coordinator),
):
    """Aprueba la limpieza, deja la habitación limpia y avisa al PMS"""
    try:
        return coordinator.approve(assignment_id, payload.approver_id, note=payload.note)
    except OperationError as e:
        raise to_http_exception(e)


@router.post("/assignments/{assignment_id}/reassign", response_model=AssignmentDetalle)
def reasignar_limpieza(
    payload: AssignmentReassign,
    assignment_id: int = Path(..., gt=0),
    coordinator: CleaningAssignmentCoordinator = Depends(_coordinator),
):
    """Devuelve la nueva asignación"""
    try:
        return coordinator.reassign(assignment_id, payload.new_staff_id, payload.approver_id)
    except OperationError as e:
        raise to_http_exception(e)


@router.get("/pending-approval", response_model=list[AssignmentDetalle])
def pendientes_aprobacion(
    organization_slug: str = Query(..., min_length=1),
    assignment_date: Optional[date] = Query(None),
    hotel_id: Optional[int] = Query(None, gt=0),
    coordinator: CleaningAssignmentCoordinator = Depends(_coordinator),
):
    return coordinator.pending_approval(organization_slug, assignment_date, hotel_id)


@router.get("/approval-history", response_model=list[AssignmentDetalle])
def historial_aprobaciones(
    organization_slug: str = Query(..., min_length=1),
    assignment_date: Optional[date] = Query(None),
    coordinator: CleaningAssignmentCoordinator = Depends(_coordinator),
):
    """Aprobaciones del día (hoy, hora del hotel, si no se indica fecha)"""
    return coordinator.approval_history(organization_slug, assignment_date or get_hotel_now().date())
