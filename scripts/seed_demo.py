import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from database.conexion import SessionLocal
from models import (
    AssignmentStatus,
    CleaningAssignment,
    Department,
    Hotel,
    MinibarItem,
    Room,
    ServiceTicket,
    StaffMember,
    StaffRole,
    TicketPriority,
)
from services.ticket_lifecycle import SLA_HOURS
from utils.timezone import utcnow

ORG = "demo-group"


# Simple upsert helper

def get_or_create(db, model, defaults=None, **kwargs):
    defaults = defaults or {}
    instance = db.query(model).filter_by(**kwargs).first()
    if instance:
        changed = False
        for k, v in defaults.items():
            if getattr(instance, k) != v:
                setattr(instance, k, v)
                changed = True
        if changed:
            db.add(instance)
        return instance, False
    params = {**kwargs, **defaults}
    instance = model(**params)
    db.add(instance)
    return instance, True


def ensure_sample_data(session_factory=SessionLocal, today: date = None):
    """Hotel de prueba con habitaciones, staff, minibar, un ticket viejo y una limpieza pendiente"""
    db = session_factory()
    created = 0
    try:
        today = today or date.today()

        hotel, new = get_or_create(db, Hotel, organization_slug=ORG, name="Hotel Demo")
        created += new
        db.flush()  # ensure id is available

        rooms = {}
        for num, nights in [("101", 0), ("102", 3), ("201", 1)]:
            room, new = get_or_create(
                db,
                Room,
                hotel_id=hotel.id,
                room_number=num,
                defaults={"floor_number": int(num[0]), "guest_nights_stayed": nights, "minibar_qr_token": f"demo-{num}"},
            )
            rooms[num] = room
            created += new

        staff = {}
        for username, role in [
            ("hk.maria", StaffRole.HOUSEKEEPING),
            ("hk.supervisor", StaffRole.HOUSEKEEPING_MANAGER),
            ("mt.juan", StaffRole.MAINTENANCE),
        ]:
            member, new = get_or_create(
                db,
                StaffMember,
                username=username,
                defaults={"role": role, "organization_slug": ORG, "assigned_hotel_id": hotel.id},
            )
            staff[username] = member
            created += new

        for name, price, category in [("Agua", "2.50", "bebidas"), ("Cerveza", "3.75", "bebidas"), ("Chocolate", "1.90", "snacks")]:
            _, new = get_or_create(db, MinibarItem, name=name, defaults={"price": Decimal(price), "category": category})
            created += new
        db.flush()  # ensure room and staff ids

        # Ticket sin asignar de hace 6 horas: lo toma el auto dispatch
        created_at = utcnow() - timedelta(hours=6)
        _, new = get_or_create(
            db,
            ServiceTicket,
            ticket_number="TKT-DEMO-000001",
            defaults={
                "title": "Canilla que gotea",
                "priority": TicketPriority.MEDIUM,
                "department": Department.MAINTENANCE,
                "hotel_id": hotel.id,
                "room_id": rooms["102"].id,
                "organization_slug": ORG,
                "created_at": created_at,
                "sla_due_date": created_at + timedelta(hours=SLA_HOURS[TicketPriority.MEDIUM]),
            },
        )
        created += new

        # Limpieza completada esperando al supervisor
        _, new = get_or_create(
            db,
            CleaningAssignment,
            room_id=rooms["101"].id,
            assignment_date=today,
            defaults={
                "organization_slug": ORG,
                "assigned_to": staff["hk.maria"].id,
                "assigned_by": staff["hk.supervisor"].id,
                "status": AssignmentStatus.COMPLETED,
                "completed_at": utcnow(),
            },
        )
        created += new

        db.commit()
        print(f"Seed OK - created {created} rows. Rooms: {list(rooms.keys())}")
        return created
    except Exception as e:
        db.rollback()
        print(f"Seed failed: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    try:
        ensure_sample_data()
    except Exception:
        sys.exit(1)
