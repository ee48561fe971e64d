import threading
from datetime import date, datetime, timedelta

import pytest

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.security import UserRole
from app.models.appointment import Appointment
from app.models.slot import Slot, SlotStatus
from app.repositories.appointment_repository import AppointmentRepository
from app.schemas.slot import SlotUpdate
from app.services.booking_service import BookingEngine
from app.services.slot_service import SlotService
from tests.conftest import make_user

DAY = date(2025, 1, 10)


def at(hour, minute=0):
    return datetime(2025, 1, 10, hour, minute)


@pytest.fixture
def slots(db, clock, locks, audit):
    return SlotService(db, clock=clock, locks=locks, audit=audit)


class TestCreateSlot:

    def test_create(self, slots, doctor, audit):
        slot = slots.create_slot(doctor.id, at(10), at(10, 30))

        assert slot.doctor_id == doctor.id
        assert slot.status == SlotStatus.OPEN
        assert "slot.created" in audit.actions()

    def test_patient_cannot_publish(self, slots, patient):
        with pytest.raises(ForbiddenError):
            slots.create_slot(patient.id, at(10), at(10, 30))

    def test_unknown_doctor(self, slots):
        with pytest.raises(NotFoundError):
            slots.create_slot(424242, at(10), at(10, 30))

    @pytest.mark.parametrize("start,end", [
        (at(10, 30), at(10)),
        (at(10), at(10)),
        (datetime(2024, 12, 31, 10), datetime(2024, 12, 31, 11)),
    ])
    def test_invalid_window(self, slots, doctor, start, end):
        with pytest.raises(ValidationError):
            slots.create_slot(doctor.id, start, end)


class TestUpdateSlot:

    def test_block(self, slots, doctor):
        slot = slots.create_slot(doctor.id, at(10), at(10, 30))
        assert slots.update_slot(slot.id, doctor.id, SlotUpdate(status="blocked")).status == SlotStatus.BLOCKED
        assert slots.update_slot(slot.id, doctor.id, SlotUpdate(status="open")).status == SlotStatus.OPEN

    def test_absent_status_leaves_slot_alone(self, slots, doctor, audit):
        slot = slots.create_slot(doctor.id, at(10), at(10, 30))
        before = list(audit.events)

        updated = slots.update_slot(slot.id, doctor.id, SlotUpdate())
        assert updated.status == SlotStatus.OPEN
        assert audit.events == before

    def test_explicit_null_status_rejected(self, slots, doctor):
        slot = slots.create_slot(doctor.id, at(10), at(10, 30))
        with pytest.raises(ValidationError):
            slots.update_slot(slot.id, doctor.id, SlotUpdate(status=None))

    def test_other_doctor_forbidden(self, db, slots, doctor):
        slot = slots.create_slot(doctor.id, at(10), at(10, 30))
        other = make_user(db, UserRole.DOCTOR)
        with pytest.raises(ForbiddenError):
            slots.update_slot(slot.id, other.id, SlotUpdate(status="blocked"))


class TestDeleteSlot:

    def test_delete(self, slots, doctor):
        slot = slots.create_slot(doctor.id, at(10), at(10, 30))
        slots.delete_slot(slot.id, doctor.id)
        with pytest.raises(NotFoundError):
            slots.get_slot(slot.id)

    def test_referenced_slot_cannot_be_deleted(self, slots, booking, state_machine, doctor, patient):
        slot = slots.create_slot(doctor.id, at(10), at(10, 30))
        appointment = booking.create_appointment(patient.id, doctor.id, at(10), at(10, 30), slot_id=slot.id)
        with pytest.raises(ConflictError):
            slots.delete_slot(slot.id, doctor.id)

        # A cancelled appointment still references the slot
        state_machine.cancel(appointment.id, patient.id)
        with pytest.raises(ConflictError):
            slots.delete_slot(slot.id, doctor.id)

    def test_patient_cannot_delete(self, slots, doctor, patient):
        slot = slots.create_slot(doctor.id, at(10), at(10, 30))
        with pytest.raises(ForbiddenError):
            slots.delete_slot(slot.id, patient.id)


class TestAvailableSlots:

    def test_only_bookable_slots(self, slots, booking, clock, doctor, patient):
        free = slots.create_slot(doctor.id, at(9), at(9, 30))
        blocked = slots.create_slot(doctor.id, at(10), at(10, 30))
        slots.update_slot(blocked.id, doctor.id, SlotUpdate(status="blocked"))
        taken = slots.create_slot(doctor.id, at(11), at(11, 30))
        booking.create_appointment(patient.id, doctor.id, at(11), at(11, 30), slot_id=taken.id)
        slots.create_slot(doctor.id, at(9) + timedelta(days=1), at(9, 30) + timedelta(days=1))

        assert [s.id for s in slots.list_available_slots(doctor.id, DAY)] == [free.id]

        # Once the day has started, earlier slots drop out
        clock.current = at(9, 15)
        assert slots.list_available_slots(doctor.id, DAY) == []

    def test_overlap_with_off_slot_appointment(self, slots, booking, doctor, patient):
        slot = slots.create_slot(doctor.id, at(14), at(15))
        booking.create_appointment(patient.id, doctor.id, at(14, 30), at(14, 45))
        assert slot.id not in [s.id for s in slots.list_available_slots(doctor.id, DAY)]

    def test_list_doctor_slots(self, slots, doctor):
        created = [slots.create_slot(doctor.id, at(h), at(h, 30)).id for h in (9, 10)]
        assert sorted(s.id for s in slots.list_doctor_slots(doctor.id)) == sorted(created)


class GatedAppointments(AppointmentRepository):
    """Pauses a booking after its slot checks, before the overlap scan."""

    def __init__(self, db, reached, proceed):
        super().__init__(db)
        self.reached = reached
        self.proceed = proceed

    def find_overlapping(self, doctor_id, start, end):
        self.reached.set()
        self.proceed.wait(5)
        return super().find_overlapping(doctor_id, start, end)


class TestSlotRaces:

    def run_against_booking(self, session_factory, clock, locks, doctor_id, patient_id, slot_id, change):
        reached, proceed = threading.Event(), threading.Event()
        outcome = {}

        def book():
            session = session_factory()
            try:
                engine = BookingEngine(
                    session, clock=clock, locks=locks,
                    appointments=GatedAppointments(session, reached, proceed),
                )
                outcome["booking"] = engine.create_appointment(
                    patient_id, doctor_id, at(10), at(10, 30), slot_id=slot_id
                ).id
            finally:
                session.close()

        def modify():
            session = session_factory()
            try:
                change(SlotService(session, clock=clock, locks=locks))
                outcome["change"] = "applied"
            except ConflictError:
                outcome["change"] = "conflict"
            finally:
                session.close()

        booking_thread = threading.Thread(target=book)
        booking_thread.start()
        assert reached.wait(5)

        change_thread = threading.Thread(target=modify)
        change_thread.start()
        change_thread.join(0.3)
        # Waits on the doctor's lock while the booking is in flight
        assert change_thread.is_alive()

        proceed.set()
        booking_thread.join(5)
        change_thread.join(5)
        return outcome

    def test_delete_waits_for_in_flight_booking(self, session_factory, clock, locks, slots, doctor, patient):
        doctor_id, patient_id = doctor.id, patient.id
        slot_id = slots.create_slot(doctor_id, at(10), at(10, 30)).id

        outcome = self.run_against_booking(
            session_factory, clock, locks, doctor_id, patient_id, slot_id,
            lambda service: service.delete_slot(slot_id, doctor_id),
        )

        assert "booking" in outcome
        assert outcome["change"] == "conflict"

        verify = session_factory()
        try:
            assert verify.query(Slot).filter(Slot.id == slot_id).count() == 1
            assert verify.query(Appointment).filter(Appointment.slot_id == slot_id).count() == 1
        finally:
            verify.close()

    def test_block_lands_after_in_flight_booking(self, session_factory, clock, locks, slots, doctor, patient):
        doctor_id, patient_id = doctor.id, patient.id
        slot_id = slots.create_slot(doctor_id, at(10), at(10, 30)).id

        outcome = self.run_against_booking(
            session_factory, clock, locks, doctor_id, patient_id, slot_id,
            lambda service: service.update_slot(slot_id, doctor_id, SlotUpdate(status="blocked")),
        )

        assert "booking" in outcome
        assert outcome["change"] == "applied"

        verify = session_factory()
        try:
            booked = verify.query(Appointment).filter(Appointment.id == outcome["booking"]).one()
            assert booked.slot_id == slot_id
            assert verify.query(Slot).filter(Slot.id == slot_id).one().status == SlotStatus.BLOCKED
        finally:
            verify.close()
