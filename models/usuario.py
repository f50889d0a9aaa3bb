"""
Personal del hotel y sus roles operativos
"""
import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, Enum
from database.conexion import Base
from utils.timezone import utcnow


class StaffRole(str, enum.Enum):
    HOUSEKEEPING = "housekeeping"
    HOUSEKEEPING_MANAGER = "housekeeping_manager"
    MAINTENANCE = "maintenance"
    MAINTENANCE_MANAGER = "maintenance_manager"
    RECEPTION = "reception"
    RECEPTION_MANAGER = "reception_manager"
    MARKETING = "marketing"
    MARKETING_MANAGER = "marketing_manager"
    BACK_OFFICE_MANAGER = "back_office_manager"
    CONTROL_MANAGER = "control_manager"
    FINANCE_MANAGER = "finance_manager"
    TOP_MANAGEMENT_MANAGER = "top_management_manager"
    MANAGER = "manager"
    ADMIN = "admin"


class Department(str, enum.Enum):
    HOUSEKEEPING = "housekeeping"
    MAINTENANCE = "maintenance"
    RECEPTION = "reception"
    MARKETING = "marketing"
    BACK_OFFICE = "back_office"
    CONTROL = "control"
    FINANCE = "finance"
    TOP_MANAGEMENT = "top_management"


class StaffMember(Base):
    """Tabla de personal (el login lo resuelve el proveedor de identidad)"""
    __tablename__ = "staff_members"
    __table_args__ = (
        Index('idx_staff_username', 'username'),
        Index('idx_staff_org', 'organization_slug'),
        Index('idx_staff_activo', 'activo'),
    )

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)
    full_name = Column(String(120), nullable=True)
    email = Column(String(100), nullable=True)

    role = Column(Enum(StaffRole, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    organization_slug = Column(String(60), nullable=False)
    assigned_hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="SET NULL"), nullable=True)

    activo = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    def __repr__(self):
        return f"<StaffMember(id={self.id}, username='{self.username}', role='{self.role}')>"
