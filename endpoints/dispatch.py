from fastapi import APIRouter, Depends, Path, status

from schemas.dispatch import DispatchResult, SessionClosed
from schemas.tickets import TicketRead
from services.auto_dispatcher import DispatchScheduler, get_dispatch_scheduler
from utils.errors import OperationError, to_http_exception

router = APIRouter(prefix="/dispatch", tags=["Dispatch"])


def _result(staff_id: int, ticket) -> DispatchResult:
    return DispatchResult(
        staff_id=staff_id,
        claimed=ticket is not None,
        ticket=TicketRead.model_validate(ticket) if ticket is not None else None,
    )


@router.post("/sessions/{staff_id}", response_model=DispatchResult, status_code=status.HTTP_201_CREATED)
def abrir_sesion(
    staff_id: int = Path(..., gt=0),
    scheduler: DispatchScheduler = Depends(get_dispatch_scheduler),
):
    """Login del staff: dispatch inmediato y alta en el ciclo periódico"""
    try:
        ticket = scheduler.register(staff_id)
    except OperationError as e:
        raise to_http_exception(e)
    return _result(staff_id, ticket)


@router.delete("/sessions/{staff_id}", response_model=SessionClosed)
def cerrar_sesion(
    staff_id: int = Path(..., gt=0),
    scheduler: DispatchScheduler = Depends(get_dispatch_scheduler),
):
    scheduler.unregister(staff_id)
    return SessionClosed(staff_id=staff_id)


@router.post("/run/{staff_id}", response_model=DispatchResult)
def ejecutar_dispatch(
    staff_id: int = Path(..., gt=0),
    scheduler: DispatchScheduler = Depends(get_dispatch_scheduler),
):
    """Corre el dispatch para un staff sin esperar al próximo ciclo"""
    try:
        ticket = scheduler.run_once(staff_id)
    except OperationError as e:
        raise to_http_exception(e)
    return _result(staff_id, ticket)
