from datetime import datetime

import pytest

from app.core.exceptions import ForbiddenError
from app.core.security import UserRole
from app.models.appointment import AppointmentStatus
from app.models.audit_log import AuditLog
from app.schemas.audit import AuditLogFilter
from app.services.audit_service import AuditDispatcher, AuditService
from app.services.booking_service import BookingEngine
from tests.conftest import NOW, make_user


def broken_session_factory():
    raise RuntimeError("audit store unavailable")


@pytest.fixture
def dispatcher(session_factory, clock):
    dispatcher = AuditDispatcher(session_factory, clock=clock, queue_size=100, workers=2)
    dispatcher.start()
    yield dispatcher
    dispatcher.stop()


class TestAuditDispatcher:

    def test_events_are_written(self, db, dispatcher, doctor):
        dispatcher.record(doctor.id, "slot.created", "slot", 5, {"start": "2025-01-10T10:00:00"})
        dispatcher.record(None, "system.check", "system", "boot")
        dispatcher.flush()

        rows = db.query(AuditLog).order_by(AuditLog.id).all()
        assert [(r.user_id, r.action, r.entity, r.entity_id) for r in rows] == [
            (doctor.id, "slot.created", "slot", "5"),
            (None, "system.check", "system", "boot"),
        ]
        assert rows[0].meta == {"start": "2025-01-10T10:00:00"}
        assert rows[0].at == NOW

    def test_full_queue_drops_instead_of_blocking(self, session_factory, clock):
        dispatcher = AuditDispatcher(session_factory, clock=clock, queue_size=2, workers=1)
        # Not started, so nothing drains the queue
        for i in range(5):
            dispatcher.record(1, "message.sent", "message", i)

        assert dispatcher.dropped == 3

    def test_store_failure_is_swallowed(self, clock):
        dispatcher = AuditDispatcher(broken_session_factory, clock=clock, workers=1)
        dispatcher.start()
        try:
            dispatcher.record(1, "appointment.created", "appointment", 1)
            dispatcher.flush()
            assert dispatcher.failed == 1
        finally:
            dispatcher.stop()

    def test_booking_survives_broken_audit_store(self, db, clock, locks, patient, doctor):
        dispatcher = AuditDispatcher(broken_session_factory, clock=clock, workers=1)
        dispatcher.start()
        try:
            engine = BookingEngine(db, clock=clock, locks=locks, audit=dispatcher)
            appointment = engine.create_appointment(
                patient.id, doctor.id, datetime(2025, 1, 10, 10), datetime(2025, 1, 10, 10, 30)
            )
            dispatcher.flush()
        finally:
            dispatcher.stop()

        assert appointment.status == AppointmentStatus.PENDING
        assert dispatcher.failed == 1

    def test_stop_drains_queue(self, db, session_factory, clock, doctor):
        dispatcher = AuditDispatcher(session_factory, clock=clock, workers=1)
        dispatcher.start()
        for i in range(10):
            dispatcher.record(doctor.id, "message.sent", "message", i)
        dispatcher.stop()

        assert db.query(AuditLog).count() == 10


class TestAuditService:

    @pytest.fixture
    def seeded(self, dispatcher, clock, doctor, patient):
        dispatcher.record(doctor.id, "slot.created", "slot", 1)
        clock.advance(hours=1)
        dispatcher.record(patient.id, "appointment.created", "appointment", 7)
        clock.advance(hours=1)
        dispatcher.record(doctor.id, "appointment.confirmed", "appointment", 7)
        dispatcher.flush()

    def test_admin_lists_everything(self, db, seeded):
        admin = make_user(db, UserRole.ADMIN)
        logs = AuditService(db).list_logs(admin.id, AuditLogFilter())
        assert [log.action for log in logs] == [
            "appointment.confirmed", "appointment.created", "slot.created"
        ]

    def test_filters(self, db, seeded):
        admin = make_user(db, UserRole.ADMIN)
        service = AuditService(db)

        by_entity = service.list_logs(admin.id, AuditLogFilter(entity="appointment", entity_id="7"))
        assert len(by_entity) == 2

        by_action = service.list_logs(admin.id, AuditLogFilter(action="slot.created"))
        assert [log.entity_id for log in by_action] == ["1"]

        windowed = service.list_logs(admin.id, AuditLogFilter(start_date=datetime(2025, 1, 1, 9, 30)))
        assert [log.action for log in windowed] == ["appointment.confirmed", "appointment.created"]

    def test_non_admin_denied(self, db, seeded, doctor):
        with pytest.raises(ForbiddenError):
            AuditService(db).list_logs(doctor.id, AuditLogFilter())

    def test_user_sees_own_actions(self, db, seeded, patient, doctor):
        service = AuditService(db)
        assert [log.action for log in service.list_user_logs(patient.id, patient.id)] == ["appointment.created"]
        with pytest.raises(ForbiddenError):
            service.list_user_logs(patient.id, doctor.id)
