from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict

from models.minibar import ConsumptionSource


class MinibarItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    price: Decimal
    category: Optional[str] = None


class UsageCreate(BaseModel):
    room_id: Optional[int] = None
    minibar_item_id: Optional[int] = None
    quantity: Optional[int] = None
    source: ConsumptionSource = ConsumptionSource.STAFF
    recorded_by: Optional[int] = None


class UsageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    room_id: int
    minibar_item_id: int
    quantity_used: int
    usage_date: datetime
    usage_day: date
    source: ConsumptionSource
    is_cleared: bool
    recorded_by: Optional[int] = None
    item: Optional[MinibarItemRead] = None


class UsageRecorded(BaseModel):
    action: str  # created | overridden
    record: UsageRead


class GuestItem(BaseModel):
    minibar_item_id: int = Field(..., gt=0)
    # El rango 1..GUEST_MAX_QUANTITY lo valida el servicio
    quantity: int


class GuestSubmissionCreate(BaseModel):
    items: List[GuestItem] = Field(..., min_length=1)


class GuestSubmissionRead(BaseModel):
    success: bool = True
    inserted: int
    skipped: int
    room_number: str


class StayUsage(BaseModel):
    room_id: int
    selected_day: date
    lookback_days: int
    records: List[UsageRead]
    total: str
    total_items: int


class ClearPreviousDayRead(BaseModel):
    hotel_id: int
    cleared: int
