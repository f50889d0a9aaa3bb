import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Text,
    Index,
    Enum,
)
from sqlalchemy.orm import relationship
from database.conexion import Base
from models.usuario import Department
from utils.timezone import utcnow


class TicketPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ServiceTicket(Base):
    __tablename__ = "service_tickets"
    __table_args__ = (
        Index("idx_ticket_status", "status"),
        Index("idx_ticket_department", "department"),
        Index("idx_ticket_assigned", "assigned_to"),
        Index("idx_ticket_created", "created_at"),
        Index("idx_ticket_hotel", "hotel_id"),
    )

    id = Column(Integer, primary_key=True)
    ticket_number = Column(String(30), nullable=False, unique=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    priority = Column(
        Enum(TicketPriority, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=TicketPriority.MEDIUM,
    )
    # open | in_progress | completed (monótono)
    status = Column(
        Enum(TicketStatus, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=TicketStatus.OPEN,
    )
    department = Column(Enum(Department, values_callable=lambda obj: [e.value for e in obj]), nullable=False)

    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True)
    organization_slug = Column(String(60), nullable=False)

    created_by = Column(Integer, ForeignKey("staff_members.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    sla_due_date = Column(DateTime(timezone=True), nullable=True)

    assigned_to = Column(Integer, ForeignKey("staff_members.id", ondelete="SET NULL"), nullable=True)

    closed_at = Column(DateTime(timezone=True), nullable=True)
    closed_by = Column(Integer, ForeignKey("staff_members.id", ondelete="SET NULL"), nullable=True)
    resolution_text = Column(Text, nullable=True)
    sla_breach_reason = Column(Text, nullable=True)

    pending_supervisor_approval = Column(Boolean, default=False, nullable=False)
    supervisor_approved = Column(Boolean, default=False, nullable=False)
    supervisor_approved_by = Column(Integer, ForeignKey("staff_members.id", ondelete="SET NULL"), nullable=True)
    supervisor_approved_at = Column(DateTime(timezone=True), nullable=True)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    room = relationship("Room")
    hotel = relationship("Hotel")
    assignee = relationship("StaffMember", foreign_keys=[assigned_to])

    def is_closed(self):
        return self.status == TicketStatus.COMPLETED
