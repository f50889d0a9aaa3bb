from typing import Optional
from pydantic import BaseModel

from schemas.tickets import TicketRead


class DispatchResult(BaseModel):
    staff_id: int
    claimed: bool
    ticket: Optional[TicketRead] = None


class SessionClosed(BaseModel):
    staff_id: int
    active: bool = False
