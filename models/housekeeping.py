import enum

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Text, Index, Boolean, Enum, text
from sqlalchemy.orm import relationship
from database.conexion import Base
from utils.timezone import utcnow


class AssignmentStatus(str, enum.Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


ACTIVE_ASSIGNMENT_STATUSES = (AssignmentStatus.ASSIGNED, AssignmentStatus.IN_PROGRESS)


class AssignmentType(str, enum.Enum):
    DAILY_CLEANING = "daily_cleaning"
    CHECKOUT_CLEANING = "checkout_cleaning"
    DEEP_CLEANING = "deep_cleaning"
    MAINTENANCE = "maintenance"


class CleaningAssignment(Base):
    __tablename__ = "cleaning_assignments"
    __table_args__ = (
        Index("idx_ca_room_date", "room_id", "assignment_date"),
        Index("idx_ca_status_approved", "status", "supervisor_approved"),
        Index("idx_ca_assigned", "assigned_to"),
        Index("idx_ca_org", "organization_slug"),
        # Una sola asignación activa por habitación y día
        Index(
            "uq_ca_active_room_day",
            "room_id",
            "assignment_date",
            unique=True,
            postgresql_where=text("status IN ('assigned', 'in_progress')"),
            sqlite_where=text("status IN ('assigned', 'in_progress')"),
        ),
    )

    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="RESTRICT"), nullable=False)
    organization_slug = Column(String(60), nullable=False)

    assigned_to = Column(Integer, ForeignKey("staff_members.id", ondelete="SET NULL"), nullable=True)
    assigned_by = Column(Integer, ForeignKey("staff_members.id", ondelete="SET NULL"), nullable=True)

    assignment_date = Column(Date, nullable=False)
    assignment_type = Column(
        Enum(AssignmentType, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=AssignmentType.DAILY_CLEANING,
    )
    status = Column(
        Enum(AssignmentStatus, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=AssignmentStatus.ASSIGNED,
    )
    priority = Column(Integer, nullable=False, default=1)  # 1 normal | 2 alta | 3 urgente

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    supervisor_approved = Column(Boolean, default=False, nullable=False)
    supervisor_approved_by = Column(Integer, ForeignKey("staff_members.id", ondelete="SET NULL"), nullable=True)
    supervisor_approved_at = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    room = relationship("Room")
    assignee = relationship("StaffMember", foreign_keys=[assigned_to])

    def is_active(self):
        return self.status in ACTIVE_ASSIGNMENT_STATUSES

    def is_pending_approval(self):
        return self.status == AssignmentStatus.COMPLETED and not self.supervisor_approved
