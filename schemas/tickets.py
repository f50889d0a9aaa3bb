from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from models.tickets import TicketPriority, TicketStatus
from models.usuario import Department


class TicketCreate(BaseModel):
    hotel_id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=200)
    department: Department
    priority: TicketPriority = TicketPriority.MEDIUM
    room_id: Optional[int] = None
    description: Optional[str] = None
    assigned_to: Optional[int] = None
    created_by: Optional[int] = None


class TicketStart(BaseModel):
    staff_id: int = Field(..., gt=0)


class TicketClose(BaseModel):
    # Los blancos los valida el servicio (ValidationError -> 422 con mensaje propio)
    resolution_text: Optional[str] = None
    breach_reason: Optional[str] = None
    closed_by: Optional[int] = None


class TicketSubmitApproval(BaseModel):
    resolution_text: Optional[str] = None
    breach_reason: Optional[str] = None
    staff_id: Optional[int] = None


class TicketApprove(BaseModel):
    approver_id: int = Field(..., gt=0)
    breach_reason: Optional[str] = None


class TicketAssignee(BaseModel):
    staff_id: int = Field(..., gt=0)


class SLAStatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    sla_hours: int
    elapsed_hours: int
    is_overdue: bool
    remaining_hours: int


class SLAHoursRead(BaseModel):
    priority: TicketPriority
    sla_hours: int


class TicketRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    ticket_number: str
    title: str
    description: Optional[str] = None
    priority: TicketPriority
    status: TicketStatus
    department: Department
    hotel_id: int
    room_id: Optional[int] = None
    organization_slug: str
    created_by: Optional[int] = None
    created_at: datetime
    sla_due_date: Optional[datetime] = None
    assigned_to: Optional[int] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[int] = None
    resolution_text: Optional[str] = None
    sla_breach_reason: Optional[str] = None
    pending_supervisor_approval: bool
    supervisor_approved: bool
    supervisor_approved_by: Optional[int] = None
    supervisor_approved_at: Optional[datetime] = None
