from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Path, Request, status
from sqlalchemy.orm import Session

from config import GUEST_RATE_LIMIT
from database import conexion
from models.core import Room
from schemas.minibar import (
    UsageCreate,
    UsageRecorded,
    UsageRead,
    GuestSubmissionCreate,
    GuestSubmissionRead,
    StayUsage,
    ClearPreviousDayRead,
)
from services.consumption_ledger import ConsumptionLedger, format_total, stay_lookback_days, summarize
from utils.errors import OperationError, to_http_exception
from utils.rate_limiter import guest_qr_key, limiter
from utils.timezone import get_hotel_now

router = APIRouter(prefix="/minibar", tags=["Minibar"])


def _ledger(db: Session = Depends(conexion.get_db)) -> ConsumptionLedger:
    return ConsumptionLedger(db)


def _stay_usage(room: Room, selected_day: date, records) -> StayUsage:
    summary = summarize(records)
    return StayUsage(
        room_id=room.id,
        selected_day=selected_day,
        lookback_days=stay_lookback_days(room.guest_nights_stayed),
        records=[UsageRead.model_validate(r) for r in records],
        total=format_total(summary.total_revenue),
        total_items=summary.total_items,
    )


# ===== CARGA =====

@router.post("/usage", response_model=UsageRecorded, status_code=status.HTTP_201_CREATED)
def registrar_consumo(payload: UsageCreate, ledger: ConsumptionLedger = Depends(_ledger)):
    """Carga de staff o recepción; corrige lo cargado por el huésped"""
    try:
        outcome = ledger.record(
            payload.room_id,
            payload.minibar_item_id,
            payload.quantity,
            payload.source,
            recorded_by=payload.recorded_by,
        )
    except OperationError as e:
        raise to_http_exception(e)
    return UsageRecorded(action=outcome.action, record=UsageRead.model_validate(outcome.record))


@router.post("/guest/{qr_token}", response_model=GuestSubmissionRead)
@limiter.limit(GUEST_RATE_LIMIT, key_func=guest_qr_key)
def carga_huesped(
    request: Request,
    payload: GuestSubmissionCreate,
    qr_token: str = Path(..., min_length=1, max_length=64),
    ledger: ConsumptionLedger = Depends(_ledger),
):
    """Endpoint público del QR de la habitación"""
    try:
        result = ledger.submit_guest(qr_token, [(i.minibar_item_id, i.quantity) for i in payload.items])
    except OperationError as e:
        raise to_http_exception(e)
    return GuestSubmissionRead(inserted=result.inserted, skipped=result.skipped, room_number=result.room_number)


# ===== CONSULTA =====

@router.get("/rooms/{room_id}/stay", response_model=StayUsage)
def consumos_estadia(
    room_id: int = Path(..., gt=0),
    day: Optional[date] = Query(None),
    db: Session = Depends(conexion.get_db),
    ledger: ConsumptionLedger = Depends(_ledger),
):
    """Consumos del día más los pendientes de las noches anteriores"""
    selected_day = day or get_hotel_now().date()
    try:
        records = ledger.for_stay(room_id, selected_day)
    except OperationError as e:
        raise to_http_exception(e)
    room = db.query(Room).filter(Room.id == room_id).first()
    return _stay_usage(room, selected_day, records)


@router.get("/stays", response_model=list[StayUsage])
def consumos_estadias(
    room_ids: List[int] = Query(...),
    day: Optional[date] = Query(None),
    db: Session = Depends(conexion.get_db),
    ledger: ConsumptionLedger = Depends(_ledger),
):
    selected_day = day or get_hotel_now().date()
    by_room = ledger.for_stays(room_ids, selected_day)
    rooms = db.query(Room).filter(Room.id.in_(list(by_room))).order_by(Room.room_number).all()
    return [_stay_usage(room, selected_day, by_room[room.id]) for room in rooms]


# ===== LIQUIDACIÓN =====

@router.post("/hotels/{hotel_id}/clear-previous-day", response_model=ClearPreviousDayRead)
def liquidar_dia_anterior(hotel_id: int = Path(..., gt=0), ledger: ConsumptionLedger = Depends(_ledger)):
    try:
        cleared = ledger.clear_previous_day(hotel_id)
    except OperationError as e:
        raise to_http_exception(e)
    return ClearPreviousDayRead(hotel_id=hotel_id, cleared=cleared)
