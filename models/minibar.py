import enum
from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Boolean,
    ForeignKey,
    Index,
    Numeric,
    Enum,
    text,
)
from sqlalchemy.orm import relationship
from database.conexion import Base
from utils.timezone import utcnow


class ConsumptionSource(str, enum.Enum):
    GUEST = "guest"
    STAFF = "staff"
    RECEPTION = "reception"


# Fuentes humanas: confirman o corrigen lo que cargó el huésped
CONFIRMING_SOURCES = (ConsumptionSource.STAFF, ConsumptionSource.RECEPTION)


class MinibarItem(Base):
    __tablename__ = "minibar_items"
    __table_args__ = (Index("idx_minibar_item_activo", "is_active"),)

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class ConsumptionRecord(Base):
    """
    Consumo de minibar por habitación.
    usage_day es el día calendario (hora del hotel) de usage_date y es la
    clave del índice único parcial: a lo sumo un registro sin liquidar por
    (habitación, item, día).
    """
    __tablename__ = "room_minibar_usage"
    __table_args__ = (
        Index("idx_usage_room_day", "room_id", "usage_day"),
        Index("idx_usage_cleared", "is_cleared"),
        Index(
            "uq_usage_active_room_item_day",
            "room_id",
            "minibar_item_id",
            "usage_day",
            unique=True,
            postgresql_where=text("is_cleared = false"),
            sqlite_where=text("is_cleared = 0"),
        ),
    )

    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    minibar_item_id = Column(Integer, ForeignKey("minibar_items.id", ondelete="RESTRICT"), nullable=False)
    organization_slug = Column(String(60), nullable=True)

    quantity_used = Column(Integer, nullable=False, default=1)
    usage_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    usage_day = Column(Date, nullable=False)

    source = Column(
        Enum(ConsumptionSource, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
    )
    is_cleared = Column(Boolean, default=False, nullable=False)
    recorded_by = Column(Integer, ForeignKey("staff_members.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    item = relationship("MinibarItem")
    room = relationship("Room")

    @property
    def total_price(self) -> Decimal:
        return Decimal(str(self.item.price)) * self.quantity_used
