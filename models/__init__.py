"""
Archivo de inicialización del paquete models.
Expone todas las clases para que SQLAlchemy (Base.metadata) las detecte al
importar 'models'.
"""

# 1. Hoteles, habitaciones e integración PMS
from .core import Hotel, Room, PMSConfiguration, PMSRoomMapping, PMSSyncLog

# 2. Personal
from .usuario import StaffMember, StaffRole, Department

# 3. Tickets de servicio
from .tickets import ServiceTicket, TicketPriority, TicketStatus

# 4. Housekeeping
from .housekeeping import CleaningAssignment, AssignmentStatus, AssignmentType

# 5. Minibar
from .minibar import MinibarItem, ConsumptionRecord, ConsumptionSource

__all__ = [
    "Hotel", "Room", "PMSConfiguration", "PMSRoomMapping", "PMSSyncLog",
    "StaffMember", "StaffRole", "Department",
    "ServiceTicket", "TicketPriority", "TicketStatus",
    "CleaningAssignment", "AssignmentStatus", "AssignmentType",
    "MinibarItem", "ConsumptionRecord", "ConsumptionSource",
]
