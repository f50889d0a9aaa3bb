from typing import Optional
from datetime import date, datetime
from pydantic import BaseModel, Field, ConfigDict

from models.housekeeping import AssignmentStatus, AssignmentType


# ===== ASIGNACIONES =====

class AssignmentCreate(BaseModel):
    room_id: int = Field(..., gt=0)
    assigned_to: int = Field(..., gt=0)
    assignment_date: date
    assignment_type: AssignmentType = AssignmentType.DAILY_CLEANING
    assigned_by: Optional[int] = None
    priority: int = Field(1, ge=1, le=3)
    notes: Optional[str] = None


class AssignmentStart(BaseModel):
    staff_id: int = Field(..., gt=0)


class AssignmentComplete(BaseModel):
    staff_id: int = Field(..., gt=0)
    notes: Optional[str] = None


class AssignmentApprove(BaseModel):
    approver_id: int = Field(..., gt=0)
    note: Optional[str] = Field(None, max_length=500)


class AssignmentReassign(BaseModel):
    new_staff_id: int = Field(..., gt=0)
    approver_id: int = Field(..., gt=0)


class AssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    room_id: int
    organization_slug: str
    assigned_to: Optional[int] = None
    assigned_by: Optional[int] = None
    assignment_date: date
    assignment_type: AssignmentType
    status: AssignmentStatus
    priority: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    supervisor_approved: bool
    supervisor_approved_by: Optional[int] = None
    supervisor_approved_at: Optional[datetime] = None
    notes: Optional[str] = None


class RoomBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    room_number: str
    floor_number: Optional[int] = None
    status: str


class AssignmentDetalle(AssignmentRead):
    room: Optional[RoomBrief] = None
