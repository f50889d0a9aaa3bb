"""
Libro de consumos de minibar por habitación.

Fuentes: huésped (QR), staff (housekeeping) y recepción. La carga del huésped
es provisoria y el staff o recepción la confirman o corrigen; un registro
cargado por staff o recepción no se pisa nunca.

La unicidad (habitación, item, día) entre registros sin liquidar la garantiza
el índice único parcial de room_minibar_usage; las correcciones usan un
update condicional sobre source = 'guest'.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

import config
from database.conexion import transaction
from models.core import Hotel, Room
from models.minibar import CONFIRMING_SOURCES, ConsumptionRecord, ConsumptionSource, MinibarItem
from utils.errors import AlreadyRecordedError, ConflictError, NotFoundError, ValidationError
from utils.logging_utils import log_event
from utils.timezone import day_bounds, hotel_day, to_utc, utcnow

_MAX_WRITE_ATTEMPTS = 3


@dataclass
class RecordOutcome:
    record: ConsumptionRecord
    action: str  # created | overridden


@dataclass
class GuestSubmission:
    inserted: int
    skipped: int
    room_number: str


@dataclass
class UsageSummary:
    total_revenue: Decimal
    total_items: int
    rooms_with_usage: int


def stay_lookback_days(guest_nights_stayed: Optional[int]) -> int:
    """Días de la ventana de estadía, incluyendo el día seleccionado (1 = solo ese día)"""
    nights = guest_nights_stayed or 0
    if nights <= 1:
        return 1
    return min(nights, config.MAX_STAY_LOOKBACK_DAYS)


def total(records: Iterable[ConsumptionRecord]) -> Decimal:
    """Σ cantidad × precio, sin redondear"""
    return sum(
        (r.total_price for r in records),
        Decimal("0"),
    )


def format_total(amount: Decimal) -> str:
    """Redondeo a 2 decimales solo para presentación"""
    return str(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def summarize(records: Sequence[ConsumptionRecord]) -> UsageSummary:
    return UsageSummary(
        total_revenue=total(records),
        total_items=sum(r.quantity_used for r in records),
        rooms_with_usage=len({r.room_id for r in records}),
    )


def _parse_source(source) -> ConsumptionSource:
    try:
        return ConsumptionSource(source)
    except ValueError:
        raise ValidationError(f"Origen de carga inválido: {source}")


class ConsumptionLedger:

    def __init__(self, db: Session):
        self.db = db

    # ===== CARGA =====

    def record(
        self,
        room_id: Optional[int],
        item_id: Optional[int],
        quantity: Optional[int],
        source,
        now: Optional[datetime] = None,
        recorded_by: Optional[int] = None,
    ) -> RecordOutcome:
        now = to_utc(now or utcnow())
        source = _parse_source(source)
        if room_id is None or item_id is None:
            raise ValidationError("Debe seleccionar habitación e item")
        if quantity is None or quantity < 1:
            raise ValidationError("La cantidad debe ser mayor a cero")

        room = self._get_room(room_id)
        item = self._get_item(item_id)
        day = hotel_day(now, room.hotel.timezone)

        for _ in range(_MAX_WRITE_ATTEMPTS):
            existing = self._active_record(room.id, item.id, day)

            if existing is None:
                record = self._try_insert(room, item, quantity, source, now, day, recorded_by)
                if record is None:
                    # otra carga ganó el insert; se resuelve contra ese registro
                    continue
                log_event(
                    "minibar", recorded_by, "Registrar consumo",
                    f"room={room.room_number} item={item.name} qty={quantity} source={source.value}",
                )
                return RecordOutcome(record=record, action="created")

            if existing.source == ConsumptionSource.GUEST and source in CONFIRMING_SOURCES:
                if self._try_override(existing.id, quantity, source, now, recorded_by):
                    self.db.refresh(existing)
                    log_event(
                        "minibar", recorded_by, "Corregir carga del huésped",
                        f"room={room.room_number} item={item.name} qty={quantity} source={source.value}",
                    )
                    return RecordOutcome(record=existing, action="overridden")
                continue

            raise AlreadyRecordedError(existing.source.value)

        raise ConflictError("No se pudo registrar el consumo por cargas concurrentes; reintente")

    def submit_guest(self, qr_token: str, items: List[Tuple[int, int]], now: Optional[datetime] = None) -> GuestSubmission:
        """
        Carga del huésped desde el QR de la habitación.
        items: [(minibar_item_id, cantidad), ...]
        """
        now = to_utc(now or utcnow())
        if not qr_token or not items:
            raise ValidationError("Se requieren el QR de la habitación y al menos un item")
        for item_id, quantity in items:
            if not item_id or quantity is None or not 1 <= quantity <= config.GUEST_MAX_QUANTITY:
                raise ValidationError(
                    f"Cada item necesita minibar_item_id y cantidad (1-{config.GUEST_MAX_QUANTITY})"
                )

        room = self.db.query(Room).filter(Room.minibar_qr_token == qr_token).first()
        if not room:
            raise NotFoundError("QR", qr_token)
        for item_id, _ in items:
            self._get_item(item_id)

        inserted = skipped = 0
        for item_id, quantity in items:
            try:
                self.record(room.id, item_id, quantity, ConsumptionSource.GUEST, now=now)
                inserted += 1
            except AlreadyRecordedError:
                skipped += 1

        log_event("minibar", "guest", "Carga por QR", f"room={room.room_number} inserted={inserted} skipped={skipped}")
        return GuestSubmission(inserted=inserted, skipped=skipped, room_number=room.room_number)

    # ===== CONSULTA =====

    def for_stay(self, room_id: int, selected_day: date) -> List[ConsumptionRecord]:
        """
        Registros del día más los no liquidados de las noches anteriores de la
        estadía (ventana de min(N, 30) días que termina en selected_day).
        """
        room = self._get_room(room_id)
        return self.for_stays([room.id], selected_day)[room.id]

    def for_stays(self, room_ids: Sequence[int], selected_day: date) -> Dict[int, List[ConsumptionRecord]]:
        """Igual que for_stay para varias habitaciones; cada una usa su propio N"""
        rooms = self.db.query(Room).filter(Room.id.in_(list(room_ids))).all()
        lookback = {room.id: stay_lookback_days(room.guest_nights_stayed) for room in rooms}
        result: Dict[int, List[ConsumptionRecord]] = {room.id: [] for room in rooms}
        if not rooms:
            return result

        day_records = (
            self.db.query(ConsumptionRecord)
            .options(joinedload(ConsumptionRecord.item))
            .filter(ConsumptionRecord.room_id.in_(list(lookback)), ConsumptionRecord.usage_day == selected_day)
            .order_by(ConsumptionRecord.usage_date.desc())
            .all()
        )
        seen = defaultdict(set)
        for record in day_records:
            result[record.room_id].append(record)
            seen[record.room_id].add(record.id)

        multi_night = [rid for rid, days in lookback.items() if days > 1]
        if not multi_night:
            return result

        window_start = selected_day - timedelta(days=max(lookback[rid] for rid in multi_night) - 1)
        earlier = (
            self.db.query(ConsumptionRecord)
            .options(joinedload(ConsumptionRecord.item))
            .filter(
                ConsumptionRecord.room_id.in_(multi_night),
                ConsumptionRecord.is_cleared.is_(False),
                ConsumptionRecord.usage_day >= window_start,
                ConsumptionRecord.usage_day < selected_day,
            )
            .order_by(ConsumptionRecord.usage_date.desc())
            .all()
        )
        for record in earlier:
            room_start = selected_day - timedelta(days=lookback[record.room_id] - 1)
            if record.usage_day < room_start or record.id in seen[record.room_id]:
                continue
            result[record.room_id].append(record)
            seen[record.room_id].add(record.id)
        return result

    # ===== LIQUIDACIÓN =====

    def clear_previous_day(self, hotel_id: int, now: Optional[datetime] = None) -> int:
        """
        Marca como liquidados los consumos de ayer (hora del hotel) de todas
        las habitaciones del hotel. Idempotente.
        """
        now = to_utc(now or utcnow())
        hotel = self.db.query(Hotel).filter(Hotel.id == hotel_id).first()
        if not hotel:
            raise NotFoundError("Hotel", hotel_id)

        yesterday = hotel_day(now, hotel.timezone) - timedelta(days=1)
        start, end = day_bounds(yesterday, hotel.timezone)
        hotel_rooms = select(Room.id).where(Room.hotel_id == hotel.id)

        with transaction(self.db):
            cleared = (
                self.db.query(ConsumptionRecord)
                .filter(
                    ConsumptionRecord.room_id.in_(hotel_rooms),
                    ConsumptionRecord.is_cleared.is_(False),
                    ConsumptionRecord.usage_date >= start,
                    ConsumptionRecord.usage_date < end,
                )
                .update({ConsumptionRecord.is_cleared: True, ConsumptionRecord.updated_at: now}, synchronize_session=False)
            )

        log_event("minibar", None, "Liquidar día anterior", f"hotel={hotel.name} dia={yesterday} registros={cleared}")
        return cleared

    # ===== HELPERS =====

    def _get_room(self, room_id: int) -> Room:
        room = self.db.query(Room).options(joinedload(Room.hotel)).filter(Room.id == room_id).first()
        if not room:
            raise NotFoundError("Habitación", room_id)
        return room

    def _get_item(self, item_id: int) -> MinibarItem:
        item = self.db.query(MinibarItem).filter(MinibarItem.id == item_id).first()
        if not item:
            raise NotFoundError("Item", item_id)
        if not item.is_active:
            raise ValidationError(f"El item {item.name} no está activo")
        return item

    def _active_record(self, room_id: int, item_id: int, day: date) -> Optional[ConsumptionRecord]:
        return self.db.query(ConsumptionRecord).filter(
            ConsumptionRecord.room_id == room_id,
            ConsumptionRecord.minibar_item_id == item_id,
            ConsumptionRecord.usage_day == day,
            ConsumptionRecord.is_cleared.is_(False),
        ).first()

    def _try_insert(self, room, item, quantity, source, now, day, recorded_by) -> Optional[ConsumptionRecord]:
        record = ConsumptionRecord(
            room_id=room.id,
            minibar_item_id=item.id,
            organization_slug=room.hotel.organization_slug,
            quantity_used=quantity,
            usage_date=now,
            usage_day=day,
            source=source,
            recorded_by=recorded_by,
        )
        try:
            with transaction(self.db):
                self.db.add(record)
        except IntegrityError:
            return None
        self.db.refresh(record)
        return record

    def _try_override(self, record_id: int, quantity: int, source: ConsumptionSource, now: datetime, recorded_by) -> bool:
        """Compare-and-swap: solo pisa si el registro sigue siendo del huésped"""
        with transaction(self.db):
            updated = (
                self.db.query(ConsumptionRecord)
                .filter(
                    ConsumptionRecord.id == record_id,
                    ConsumptionRecord.source == ConsumptionSource.GUEST,
                    ConsumptionRecord.is_cleared.is_(False),
                )
                .update(
                    {
                        ConsumptionRecord.quantity_used: quantity,
                        ConsumptionRecord.source: source,
                        ConsumptionRecord.recorded_by: recorded_by,
                        ConsumptionRecord.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )
        return updated == 1
