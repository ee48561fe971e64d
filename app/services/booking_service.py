"""
Appointment booking.

``BookingEngine`` is the only writer of new appointment rows. The overlap
check and the insert run in one transaction serialized per doctor: a keyed
mutex (``doctor:<id>``) orders callers in this deployment, and a
``SELECT ... FOR UPDATE`` on the doctor's user row orders them at the
database. Of any set of concurrent requests for overlapping ranges on one
doctor, exactly one commits and the rest get ``ConflictError``.
"""
from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional
import logging

from ..core.clock import Clock, SystemClock, to_utc_naive
from ..core.database import transaction
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.locks import LocalLockRegistry, LockRegistry
from ..models.appointment import Appointment, AppointmentStatus
from ..models.slot import SlotStatus
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.slot_repository import SlotRepository
from ..repositories.user_repository import UserDirectory, UserRepository
from .access_guard import AccessGuard
from .audit_service import AuditSink

logger = logging.getLogger(__name__)

def ranges_overlap(existing_start: datetime, existing_end: datetime,
                   new_start: datetime, new_end: datetime) -> bool:
    """True when two ranges share at least one instant (endpoints inclusive)."""
    return (
        (existing_start <= new_start and existing_end >= new_start)
        or (existing_start <= new_end and existing_end >= new_end)
        or (existing_start >= new_start and existing_end <= new_end)
    )

class BookingEngine:
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        locks: Optional[LockRegistry] = None,
        audit: Optional[AuditSink] = None,
        appointments: Optional[AppointmentRepository] = None,
        slots: Optional[SlotRepository] = None,
        users: Optional[UserDirectory] = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.locks = locks or LocalLockRegistry()
        self.audit = audit
        self.appointments = appointments or AppointmentRepository(db)
        self.slots = slots or SlotRepository(db)
        self.users = users or UserRepository(db)
        self.guard = AccessGuard(db, appointments=self.appointments)

    def create_appointment(
        self,
        patient_id: int,
        doctor_id: int,
        start_time: datetime,
        end_time: datetime,
        slot_id: Optional[int] = None,
        notes: str = "",
    ) -> Appointment:
        """Book ``[start_time, end_time]`` with a doctor; the result is pending."""
        start_time, end_time = to_utc_naive(start_time), to_utc_naive(end_time)
        if start_time is None or end_time is None:
            raise ValidationError("Start and end time are required")
        if end_time <= start_time:
            raise ValidationError("End time must be after start time")
        if start_time < self.clock.now():
            raise ValidationError("Start time cannot be in the past")

        doctor = self.users.find_by_id(doctor_id)
        if not doctor or not doctor.is_doctor:
            raise NotFoundError("Doctor not found")

        patient = self.users.find_by_id(patient_id)
        if not patient or not patient.is_patient:
            raise NotFoundError("Patient not found")

        with self.locks.hold(f"doctor:{doctor_id}"):
            with transaction(self.db):
                self.users.lock_by_id(doctor_id)

                if slot_id is not None:
                    self._check_slot(slot_id, doctor_id)

                clashes = [
                    existing for existing in self.appointments.find_overlapping(
                        doctor_id, start_time, end_time
                    )
                    if ranges_overlap(existing.start_time, existing.end_time, start_time, end_time)
                ]
                if clashes:
                    logger.warning(
                        f"Booking rejected for doctor {doctor_id} at {start_time}: "
                        f"overlaps appointment {clashes[0].id}"
                    )
                    raise ConflictError("slot already booked")

                appointment = self.appointments.add(Appointment(
                    patient_id=patient_id,
                    doctor_id=doctor_id,
                    slot_id=slot_id,
                    status=AppointmentStatus.PENDING,
                    notes=notes or "",
                    start_time=start_time,
                    end_time=end_time,
                ))

        logger.info(f"Appointment {appointment.id} booked: patient {patient_id} with doctor {doctor_id}")
        if self.audit:
            self.audit.record(patient_id, "appointment.created", "appointment", appointment.id, {
                "doctor_id": doctor_id,
                "slot_id": slot_id,
                "start_time": start_time.isoformat(),
                "end_time": end_time.isoformat(),
            })
        return appointment

    def _check_slot(self, slot_id: int, doctor_id: int):
        slot = self.slots.lock_by_id(slot_id)
        if not slot:
            raise NotFoundError("Slot not found")
        if slot.doctor_id != doctor_id:
            raise ValidationError("Slot does not belong to this doctor")
        if slot.status != SlotStatus.OPEN:
            raise ConflictError("Slot is blocked")
        if self.appointments.find_active_for_slot(slot_id):
            raise ConflictError("Slot already has an active appointment")

    def get_appointment(self, appointment_id: int, actor_id: int) -> Appointment:
        return self.guard.authorize(appointment_id, actor_id)

    def list_for_patient(self, patient_id: int) -> List[Appointment]:
        return self.appointments.find_by_patient(patient_id)

    def list_for_doctor(self, doctor_id: int) -> List[Appointment]:
        return self.appointments.find_by_doctor(doctor_id)
