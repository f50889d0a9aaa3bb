"""
Fixtures compartidas: SQLite en memoria (StaticPool), efectos secundarios
inline con clientes Mock y datos base de un hotel.
"""
import os
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock

# Agregar directorio raíz al PYTHONPATH para imports
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["AUTO_DISPATCH_ENABLED"] = "false"

import pytest
import pytz
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.conexion import Base
import models  # registra todas las tablas
from models import Hotel, Room, StaffMember, StaffRole, MinibarItem, PMSConfiguration, PMSRoomMapping
from services.notifications import SideEffects, SideEffectRunner

# 12:00 en Buenos Aires (UTC-3)
NOW = datetime(2025, 3, 10, 15, 0, tzinfo=pytz.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def side_effects():
    """Runner inline: los efectos corren antes de que vuelva la operación"""
    return SideEffects(
        runner=SideEffectRunner(max_workers=0),
        notifier=Mock(),
        pms_sync=Mock(),
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def hotel(db):
    hotel = Hotel(organization_slug="grupo-sur", name="Hotel Centro", timezone="America/Argentina/Buenos_Aires")
    db.add(hotel)
    db.commit()
    return hotel


@pytest.fixture
def make_room(db, hotel):
    def _make(room_number="101", nights=0, qr_token=None, status="dirty"):
        room = Room(
            hotel_id=hotel.id,
            room_number=room_number,
            floor_number=int(room_number[0]),
            status=status,
            guest_nights_stayed=nights,
            minibar_qr_token=qr_token,
        )
        db.add(room)
        db.commit()
        return room
    return _make


@pytest.fixture
def room(make_room):
    return make_room("101", qr_token="qr-101")


@pytest.fixture
def make_staff(db, hotel):
    def _make(username, role=StaffRole.HOUSEKEEPING, activo=True, organization_slug="grupo-sur"):
        staff = StaffMember(
            username=username,
            full_name=username.title(),
            role=role,
            organization_slug=organization_slug,
            assigned_hotel_id=hotel.id,
            activo=activo,
        )
        db.add(staff)
        db.commit()
        return staff
    return _make


@pytest.fixture
def make_item(db):
    def _make(name="Agua", price="2.50", is_active=True):
        item = MinibarItem(name=name, price=Decimal(price), category="bebidas", is_active=is_active)
        db.add(item)
        db.commit()
        return item
    return _make


@pytest.fixture
def pms_enabled(db, hotel, room):
    config = PMSConfiguration(hotel_id=hotel.id, pms_type="previo", pms_hotel_id="PRV-77", is_active=True)
    config.room_mappings.append(PMSRoomMapping(room_number=room.room_number, pms_room_id="R-101"))
    db.add(config)
    db.commit()
    db.refresh(hotel)
    return config
