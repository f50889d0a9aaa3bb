"""
Tests de asignaciones de limpieza: aprobación del supervisor y reasignación
"""
from datetime import date, timedelta

import pytest

from models import AssignmentStatus, CleaningAssignment, StaffRole
from services.cleaning_assignments import (
    CleaningAssignmentCoordinator,
    REASSIGNED_NOTE,
    SUPERSEDED_NOTE,
)
from utils.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError

DAY = date(2025, 3, 10)


class TestCleaningAssignments:

    @pytest.fixture(autouse=True)
    def setup(self, db, side_effects, room, make_staff, now):
        self.db = db
        self.side_effects = side_effects
        self.room = room
        self.maria = make_staff("maria")
        self.juan = make_staff("juan")
        self.ana = make_staff("ana")
        self.supervisor = make_staff("supervisora", role=StaffRole.HOUSEKEEPING_MANAGER)
        self.now = now
        self.coordinator = CleaningAssignmentCoordinator(db, side_effects)

    def _assign(self, staff, room=None, day=DAY):
        return self.coordinator.create(
            room_id=(room or self.room).id,
            assigned_to=staff.id,
            assignment_date=day,
            assigned_by=self.supervisor.id,
        )

    def _completed(self, staff, room=None, minutes_ago=0):
        assignment = self._assign(staff, room)
        return self.coordinator.complete(assignment.id, staff.id, now=self.now - timedelta(minutes=minutes_ago))

    # ===== CREACIÓN Y FLUJO DEL HOUSEKEEPER =====

    def test_crear_notifica_al_housekeeper(self):
        assignment = self._assign(self.maria)
        assert assignment.status == AssignmentStatus.ASSIGNED
        assert assignment.organization_slug == "grupo-sur"
        staff_id, payload = self.side_effects.notifier.notify_assignment.call_args.args
        assert staff_id == self.maria.id
        assert payload["roomNumber"] == "101"

    def test_una_sola_asignacion_activa_por_dia(self):
        self._assign(self.maria)
        with pytest.raises(ConflictError):
            self._assign(self.juan)
        # otro día no choca
        self._assign(self.juan, day=DAY + timedelta(days=1))

    def test_tipo_invalido(self):
        with pytest.raises(ValidationError):
            self.coordinator.create(self.room.id, self.maria.id, DAY, assignment_type="express")

    def test_iniciar_y_completar(self):
        assignment = self._assign(self.maria)
        assignment = self.coordinator.start(assignment.id, self.maria.id, now=self.now)
        assert assignment.status == AssignmentStatus.IN_PROGRESS
        assert assignment.started_at is not None

        assignment = self.coordinator.complete(assignment.id, self.maria.id, now=self.now, notes="Falta toalla")
        assert assignment.status == AssignmentStatus.COMPLETED
        assert assignment.supervisor_approved is False
        assert assignment.notes == "Falta toalla"
        assert assignment.is_pending_approval()
        # la habitación sigue sucia hasta la aprobación
        self.db.refresh(self.room)
        assert self.room.status == "dirty"

    def test_solo_el_asignado_puede_completar(self):
        assignment = self._assign(self.maria)
        with pytest.raises(ValidationError):
            self.coordinator.complete(assignment.id, self.juan.id, now=self.now)

    def test_completar_dos_veces(self):
        assignment = self._completed(self.maria)
        with pytest.raises(InvalidTransitionError):
            self.coordinator.complete(assignment.id, self.maria.id, now=self.now)

    # ===== APROBACIÓN =====

    def test_aprobar_deja_la_habitacion_limpia(self):
        assignment = self._completed(self.maria)
        approved = self.coordinator.approve(assignment.id, self.supervisor.id, now=self.now, note="Impecable")

        assert approved.supervisor_approved is True
        assert approved.supervisor_approved_by == self.supervisor.id
        assert "Supervisor approved: Impecable" in approved.notes
        self.db.refresh(self.room)
        assert self.room.status == "clean"
        # sin integración PMS no hay push
        self.side_effects.pms_sync.sync_room_status.assert_not_called()

    def test_aprobar_con_pms_activo_envia_estado(self, pms_enabled):
        assignment = self._completed(self.maria)
        self.coordinator.approve(assignment.id, self.supervisor.id, now=self.now)
        self.side_effects.pms_sync.sync_room_status.assert_called_once_with(self.room.id, "clean")

    def test_falla_del_pms_no_revierte_la_aprobacion(self, pms_enabled):
        self.side_effects.pms_sync.sync_room_status.side_effect = RuntimeError("timeout")
        assignment = self._completed(self.maria)
        self.coordinator.approve(assignment.id, self.supervisor.id, now=self.now)

        self.db.expire_all()
        assert self.coordinator.get(assignment.id).supervisor_approved is True

    def test_reaprobar_falla(self):
        assignment = self._completed(self.maria)
        self.coordinator.approve(assignment.id, self.supervisor.id, now=self.now)
        with pytest.raises(InvalidTransitionError):
            self.coordinator.approve(assignment.id, self.supervisor.id, now=self.now)

    def test_aprobar_no_completada(self):
        assignment = self._assign(self.maria)
        with pytest.raises(InvalidTransitionError):
            self.coordinator.approve(assignment.id, self.supervisor.id, now=self.now)

    def test_aprobar_inexistente(self):
        with pytest.raises(NotFoundError):
            self.coordinator.approve(999, self.supervisor.id, now=self.now)

    # ===== REASIGNACIÓN =====

    def _active(self):
        return self.coordinator.active_for(self.room.id, DAY)

    def test_reasignar_completada_deja_una_sola_activa(self):
        original = self._completed(self.maria)
        replacement = self.coordinator.reassign(original.id, self.juan.id, self.supervisor.id, now=self.now)

        active = self._active()
        assert [a.id for a in active] == [replacement.id]
        assert replacement.assigned_to == self.juan.id
        assert replacement.status == AssignmentStatus.ASSIGNED
        assert replacement.notes == REASSIGNED_NOTE

        self.db.refresh(original)
        assert original.supervisor_approved is True
        assert original.supervisor_approved_by == self.supervisor.id
        assert self.coordinator.pending_approval("grupo-sur") == []
        assert self.side_effects.notifier.notify_assignment.call_args.args[0] == self.juan.id

    def test_reasignar_reemplaza_la_asignacion_en_curso(self):
        original = self._assign(self.maria)
        self.coordinator.start(original.id, self.maria.id, now=self.now)

        replacement = self.coordinator.reassign(original.id, self.ana.id, self.supervisor.id, now=self.now)

        self.db.refresh(original)
        assert original.status == AssignmentStatus.COMPLETED
        assert original.supervisor_approved is True
        assert original.notes == SUPERSEDED_NOTE
        assert [a.assigned_to for a in self._active()] == [self.ana.id]
        assert replacement.id != original.id

    def test_reasignar_completada_con_otra_activa(self):
        # Maria completó; Juan quedó asignado a la misma habitación ese día
        original = self._completed(self.maria)
        other = self._assign(self.juan)

        replacement = self.coordinator.reassign(original.id, self.ana.id, self.supervisor.id, now=self.now)

        self.db.refresh(other)
        assert other.status == AssignmentStatus.COMPLETED
        assert other.notes == SUPERSEDED_NOTE
        active = self._active()
        assert len(active) == 1
        assert active[0].id == replacement.id
        assert active[0].assigned_to == self.ana.id

    def test_reasignar_a_staff_inexistente_no_cambia_nada(self):
        original = self._completed(self.maria)
        with pytest.raises(NotFoundError):
            self.coordinator.reassign(original.id, 999, self.supervisor.id, now=self.now)

        self.db.expire_all()
        assert self.coordinator.get(original.id).supervisor_approved is False
        assert self.db.query(CleaningAssignment).count() == 1

    # ===== COLAS =====

    def test_pendientes_mas_reciente_primero(self, make_room):
        room_202 = make_room("202")
        older = self._completed(self.maria, minutes_ago=30)
        newer = self._completed(self.juan, room=room_202, minutes_ago=5)

        pending = self.coordinator.pending_approval("grupo-sur", DAY)
        assert [a.id for a in pending] == [newer.id, older.id]

        self.coordinator.approve(newer.id, self.supervisor.id, now=self.now)
        assert [a.id for a in self.coordinator.pending_approval("grupo-sur")] == [older.id]
        assert [a.id for a in self.coordinator.approval_history("grupo-sur", DAY)] == [newer.id]
