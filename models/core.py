from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Text,
    UniqueConstraint,
    Index,
    JSON,
)
from sqlalchemy.orm import relationship
from database.conexion import Base
from utils.timezone import utcnow


# ============================================================================
# HOTELES Y HABITACIONES
# ============================================================================

class Hotel(Base):
    """Propiedad del grupo. organization_slug es el tenant."""
    __tablename__ = "hotels"
    __table_args__ = (
        UniqueConstraint("organization_slug", "name", name="uq_hotel_org_name"),
        Index("idx_hotel_org", "organization_slug"),
    )

    id = Column(Integer, primary_key=True)
    organization_slug = Column(String(60), nullable=False)
    name = Column(String(150), nullable=False)
    timezone = Column(String(50), default="America/Argentina/Buenos_Aires", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    rooms = relationship("Room", back_populates="hotel")
    pms_configuration = relationship("PMSConfiguration", back_populates="hotel", uselist=False)

    def has_pms_integration(self) -> bool:
        """True si el hotel tiene una integración PMS activa"""
        return bool(self.pms_configuration and self.pms_configuration.is_active)


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("hotel_id", "room_number", name="uq_room_hotel_numero"),
        Index("idx_room_hotel", "hotel_id"),
        Index("idx_room_status", "status"),
    )

    id = Column(Integer, primary_key=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    room_number = Column(String(10), nullable=False)
    floor_number = Column(Integer, nullable=True)

    # clean | dirty | out_of_order | maintenance
    status = Column(String(20), nullable=False, default="dirty")

    # Lo actualiza la sincronización de reservas del PMS
    guest_nights_stayed = Column(Integer, nullable=False, default=0)

    minibar_qr_token = Column(String(64), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    hotel = relationship("Hotel", back_populates="rooms")

    def __repr__(self):
        return f"<Room(id={self.id}, numero='{self.room_number}', hotel_id={self.hotel_id})>"


# ============================================================================
# INTEGRACIÓN PMS (Previo)
# ============================================================================

class PMSConfiguration(Base):
    __tablename__ = "pms_configurations"
    __table_args__ = (
        UniqueConstraint("hotel_id", name="uq_pms_config_hotel"),
    )

    id = Column(Integer, primary_key=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    pms_type = Column(String(30), nullable=False, default="previo")
    pms_hotel_id = Column(String(60), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    hotel = relationship("Hotel", back_populates="pms_configuration")
    room_mappings = relationship("PMSRoomMapping", back_populates="configuration", cascade="all, delete-orphan")

    def pms_room_for(self, room_number: str):
        for mapping in self.room_mappings:
            if mapping.room_number == room_number:
                return mapping
        return None


class PMSRoomMapping(Base):
    __tablename__ = "pms_room_mappings"
    __table_args__ = (
        UniqueConstraint("pms_config_id", "room_number", name="uq_pms_mapping_room"),
    )

    id = Column(Integer, primary_key=True)
    pms_config_id = Column(Integer, ForeignKey("pms_configurations.id", ondelete="CASCADE"), nullable=False)
    room_number = Column(String(10), nullable=False)
    pms_room_id = Column(String(60), nullable=False)
    pms_room_name = Column(String(100), nullable=True)

    configuration = relationship("PMSConfiguration", back_populates="room_mappings")


class PMSSyncLog(Base):
    """Historial de pushes al PMS (éxitos, fallas y omitidos)"""
    __tablename__ = "pms_sync_logs"
    __table_args__ = (
        Index("idx_pms_sync_hotel", "hotel_id"),
        Index("idx_pms_sync_time", "created_at"),
    )

    id = Column(Integer, primary_key=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True)
    sync_type = Column(String(40), nullable=False, default="room_status_update")
    status = Column(String(20), nullable=False)  # success | failed | skipped
    request_payload = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
