"""
Coordinación de asignaciones de limpieza:
completar -> aprobación del supervisor, o reasignación con reemplazo de las
asignaciones activas de la misma habitación y día.

Regla: a lo sumo una asignación activa (assigned / in_progress) por
(habitación, día). El índice único parcial uq_ca_active_room_day la respalda
en la base.
"""
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from database.conexion import transaction
from models.core import Room
from models.housekeeping import (
    ACTIVE_ASSIGNMENT_STATUSES,
    AssignmentStatus,
    AssignmentType,
    CleaningAssignment,
)
from models.usuario import StaffMember
from services.notifications import SideEffects
from utils.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from utils.logging_utils import log_event
from utils.timezone import to_utc, utcnow

SUPERSEDED_NOTE = "Reassigned to another housekeeper"
REASSIGNED_NOTE = "Reassigned — previous completion needs review"


def _append_notes(assignment: CleaningAssignment, texto: str) -> None:
    if assignment.notes:
        assignment.notes += f"\n{texto}"
    else:
        assignment.notes = texto


class CleaningAssignmentCoordinator:

    def __init__(self, db: Session, side_effects: SideEffects):
        self.db = db
        self.side_effects = side_effects

    # ===== LECTURA =====

    def get(self, assignment_id: int) -> CleaningAssignment:
        assignment = (
            self.db.query(CleaningAssignment)
            .options(joinedload(CleaningAssignment.room))
            .filter(CleaningAssignment.id == assignment_id)
            .first()
        )
        if not assignment:
            raise NotFoundError("Asignación", assignment_id)
        return assignment

    def active_for(self, room_id: int, assignment_date: date) -> List[CleaningAssignment]:
        return self.db.query(CleaningAssignment).filter(
            CleaningAssignment.room_id == room_id,
            CleaningAssignment.assignment_date == assignment_date,
            CleaningAssignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
        ).all()

    def pending_approval(
        self,
        organization_slug: str,
        assignment_date: Optional[date] = None,
        hotel_id: Optional[int] = None,
    ) -> List[CleaningAssignment]:
        """Completadas y sin aprobar, la más reciente primero"""
        query = (
            self.db.query(CleaningAssignment)
            .options(joinedload(CleaningAssignment.room))
            .filter(
                CleaningAssignment.organization_slug == organization_slug,
                CleaningAssignment.status == AssignmentStatus.COMPLETED,
                CleaningAssignment.supervisor_approved.is_(False),
            )
        )
        if assignment_date:
            query = query.filter(CleaningAssignment.assignment_date == assignment_date)
        if hotel_id:
            query = query.join(Room, Room.id == CleaningAssignment.room_id).filter(Room.hotel_id == hotel_id)
        return query.order_by(CleaningAssignment.completed_at.desc()).all()

    def approval_history(self, organization_slug: str, assignment_date: date) -> List[CleaningAssignment]:
        return (
            self.db.query(CleaningAssignment)
            .options(joinedload(CleaningAssignment.room))
            .filter(
                CleaningAssignment.organization_slug == organization_slug,
                CleaningAssignment.assignment_date == assignment_date,
                CleaningAssignment.status == AssignmentStatus.COMPLETED,
                CleaningAssignment.supervisor_approved.is_(True),
            )
            .order_by(CleaningAssignment.supervisor_approved_at.desc())
            .all()
        )

    # ===== FLUJO DEL HOUSEKEEPER =====

    def create(
        self,
        room_id: int,
        assigned_to: int,
        assignment_date: date,
        assignment_type=AssignmentType.DAILY_CLEANING,
        assigned_by: Optional[int] = None,
        priority: int = 1,
        notes: Optional[str] = None,
    ) -> CleaningAssignment:
        room = self._get_room(room_id)
        staff = self._get_staff(assigned_to)
        try:
            assignment_type = AssignmentType(assignment_type)
        except ValueError:
            raise ValidationError(f"Tipo de asignación inválido: {assignment_type}")
        if self.active_for(room.id, assignment_date):
            raise ConflictError(
                f"La habitación {room.room_number} ya tiene una asignación activa para {assignment_date}"
            )

        try:
            with transaction(self.db):
                assignment = CleaningAssignment(
                    room_id=room.id,
                    organization_slug=room.hotel.organization_slug,
                    assigned_to=staff.id,
                    assigned_by=assigned_by,
                    assignment_date=assignment_date,
                    assignment_type=assignment_type,
                    status=AssignmentStatus.ASSIGNED,
                    priority=priority,
                    notes=notes,
                )
                self.db.add(assignment)
        except IntegrityError:
            # otra sesión asignó la habitación entre la verificación y el insert
            raise ConflictError(
                f"La habitación {room.room_number} ya tiene una asignación activa para {assignment_date}"
            )

        self.db.refresh(assignment)
        log_event("housekeeping", assigned_by, "Crear asignación", f"room={room.room_number} fecha={assignment_date}")
        self.side_effects.notify_assignment(staff.id, self._notification_payload(assignment))
        return assignment

    def start(self, assignment_id: int, staff_id: int, now: Optional[datetime] = None) -> CleaningAssignment:
        now = to_utc(now or utcnow())
        assignment = self.get(assignment_id)
        self._ensure_assignee(assignment, staff_id)
        if assignment.status != AssignmentStatus.ASSIGNED:
            raise InvalidTransitionError(f"La asignación {assignment.id} no está pendiente de inicio")

        with transaction(self.db):
            assignment.status = AssignmentStatus.IN_PROGRESS
            assignment.started_at = now

        self.db.refresh(assignment)
        log_event("housekeeping", staff_id, "Iniciar limpieza", f"asignacion={assignment.id}")
        return assignment

    def complete(
        self,
        assignment_id: int,
        staff_id: int,
        now: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> CleaningAssignment:
        """La limpieza queda completada y entra en la cola de aprobación"""
        now = to_utc(now or utcnow())
        assignment = self.get(assignment_id)
        self._ensure_assignee(assignment, staff_id)
        if not assignment.is_active():
            raise InvalidTransitionError(f"La asignación {assignment.id} ya está completada")

        with transaction(self.db):
            assignment.status = AssignmentStatus.COMPLETED
            if assignment.started_at is None:
                assignment.started_at = now
            assignment.completed_at = now
            assignment.supervisor_approved = False
            if notes:
                _append_notes(assignment, notes)

        self.db.refresh(assignment)
        log_event("housekeeping", staff_id, "Finalizar limpieza", f"asignacion={assignment.id}")
        return assignment

    # ===== SUPERVISOR =====

    def approve(
        self,
        assignment_id: int,
        approver_id: int,
        now: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> CleaningAssignment:
        now = to_utc(now or utcnow())
        assignment = self.get(assignment_id)
        if assignment.status != AssignmentStatus.COMPLETED:
            raise InvalidTransitionError(f"La asignación {assignment.id} no está completada")
        if assignment.supervisor_approved:
            raise InvalidTransitionError(f"La asignación {assignment.id} ya fue aprobada")

        room = assignment.room
        with transaction(self.db):
            assignment.supervisor_approved = True
            assignment.supervisor_approved_by = approver_id
            assignment.supervisor_approved_at = now
            if note and note.strip():
                _append_notes(assignment, f"Supervisor approved: {note.strip()}")
            room.status = "clean"

        self.db.refresh(assignment)
        log_event("housekeeping", approver_id, "Aprobar limpieza", f"asignacion={assignment.id} room={room.room_number}")

        if room.hotel.has_pms_integration():
            self.side_effects.push_room_status(room.id, "clean")
        return assignment

    def reassign(
        self,
        assignment_id: int,
        new_staff_id: int,
        approver_id: int,
        now: Optional[datetime] = None,
    ) -> CleaningAssignment:
        """
        Reemplaza las asignaciones activas de (habitación, día) por una nueva
        para new_staff_id. La asignación original sale de la cola de
        aprobación sin que eso la valide como trabajo correcto.
        Devuelve la nueva asignación.
        """
        now = to_utc(now or utcnow())
        target = self.get(assignment_id)
        staff = self._get_staff(new_staff_id)

        with transaction(self.db):
            for other in self.active_for(target.room_id, target.assignment_date):
                self._supersede(other, approver_id, now)
            self.db.flush()

            replacement = CleaningAssignment(
                room_id=target.room_id,
                organization_slug=target.organization_slug,
                assigned_to=staff.id,
                assigned_by=approver_id,
                assignment_date=target.assignment_date,
                assignment_type=target.assignment_type,
                status=AssignmentStatus.ASSIGNED,
                priority=target.priority,
                notes=REASSIGNED_NOTE,
            )
            self.db.add(replacement)

            target.supervisor_approved = True
            target.supervisor_approved_by = approver_id
            target.supervisor_approved_at = now

        self.db.refresh(replacement)
        log_event(
            "housekeeping",
            approver_id,
            "Reasignar limpieza",
            f"asignacion={target.id} nueva={replacement.id} staff={staff.id}",
        )
        self.side_effects.notify_assignment(staff.id, self._notification_payload(replacement))
        return replacement

    # ===== HELPERS =====

    @staticmethod
    def _supersede(assignment: CleaningAssignment, approver_id: int, now: datetime) -> None:
        assignment.status = AssignmentStatus.COMPLETED
        assignment.supervisor_approved = True
        assignment.supervisor_approved_by = approver_id
        assignment.supervisor_approved_at = now
        assignment.notes = SUPERSEDED_NOTE

    @staticmethod
    def _ensure_assignee(assignment: CleaningAssignment, staff_id: int) -> None:
        if assignment.assigned_to != staff_id:
            raise ValidationError(f"La asignación {assignment.id} no pertenece al staff {staff_id}")

    def _get_room(self, room_id: int) -> Room:
        room = self.db.query(Room).filter(Room.id == room_id).first()
        if not room:
            raise NotFoundError("Habitación", room_id)
        return room

    def _get_staff(self, staff_id: int) -> StaffMember:
        staff = self.db.query(StaffMember).filter(StaffMember.id == staff_id).first()
        if not staff:
            raise NotFoundError("Staff", staff_id)
        return staff

    @staticmethod
    def _notification_payload(assignment: CleaningAssignment) -> dict:
        return {
            "type": "cleaning_assignment",
            "assignmentId": assignment.id,
            "assignmentDate": assignment.assignment_date.isoformat(),
            "assignmentType": assignment.assignment_type.value,
            "roomId": assignment.room_id,
            "roomNumber": assignment.room.room_number if assignment.room else None,
        }
