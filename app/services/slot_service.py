from sqlalchemy.orm import Session
from datetime import date, datetime, time, timedelta
from typing import List, Optional
import logging

from ..core.clock import Clock, SystemClock, to_utc_naive
from ..core.database import transaction
from ..core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..core.locks import LocalLockRegistry, LockRegistry
from ..models.slot import Slot, SlotStatus
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.slot_repository import SlotRepository
from ..repositories.user_repository import UserDirectory, UserRepository
from ..schemas.slot import SlotUpdate
from .audit_service import AuditSink
from .booking_service import ranges_overlap

logger = logging.getLogger(__name__)

class SlotService:
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        locks: Optional[LockRegistry] = None,
        audit: Optional[AuditSink] = None,
        slots: Optional[SlotRepository] = None,
        appointments: Optional[AppointmentRepository] = None,
        users: Optional[UserDirectory] = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.locks = locks or LocalLockRegistry()
        self.audit = audit
        self.slots = slots or SlotRepository(db)
        self.appointments = appointments or AppointmentRepository(db)
        self.users = users or UserRepository(db)

    def _get_owned_slot(self, slot_id: int, actor_id: int) -> Slot:
        slot = self.slots.find_by_id(slot_id)
        if not slot:
            raise NotFoundError("Slot not found")
        if slot.doctor_id != actor_id:
            logger.warning(f"User {actor_id} tried to modify slot {slot_id} owned by {slot.doctor_id}")
            raise ForbiddenError("Only the owning doctor may modify this slot")
        return slot

    def _record(self, actor_id, action, slot: Slot, **metadata):
        if self.audit:
            self.audit.record(actor_id, action, "slot", slot.id, metadata)

    def create_slot(self, doctor_id: int, start_time: datetime, end_time: datetime) -> Slot:
        """Open a new availability window for a doctor."""
        doctor = self.users.find_by_id(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")
        if not doctor.is_doctor:
            raise ForbiddenError("Only doctors can publish availability")

        start_time, end_time = to_utc_naive(start_time), to_utc_naive(end_time)
        if start_time >= end_time:
            raise ValidationError("Start time must be before end time")
        if start_time < self.clock.now():
            raise ValidationError("Start time cannot be in the past")

        with transaction(self.db):
            slot = self.slots.add(Slot(
                doctor_id=doctor_id,
                start_time=start_time,
                end_time=end_time,
                status=SlotStatus.OPEN,
            ))

        logger.info(f"Doctor {doctor_id} opened slot {slot.id} at {start_time}")
        self._record(doctor_id, "slot.created", slot, start=start_time.isoformat())
        return slot

    def update_slot(self, slot_id: int, actor_id: int, changes: SlotUpdate) -> Slot:
        slot = self._get_owned_slot(slot_id, actor_id)

        if "status" in changes.model_fields_set:
            if changes.status is None:
                raise ValidationError("Slot status cannot be null")
            try:
                new_status = SlotStatus(changes.status)
            except ValueError:
                raise ValidationError(f"Invalid slot status: {changes.status}")

            # Same key the booking engine holds, so a slot is never blocked mid-booking
            with self.locks.hold(f"doctor:{slot.doctor_id}"):
                with transaction(self.db):
                    slot = self.slots.lock_by_id(slot_id)
                    if not slot:
                        raise NotFoundError("Slot not found")
                    slot.status = new_status

            logger.info(f"Slot {slot_id} set to {new_status.value}")
            self._record(actor_id, "slot.updated", slot, status=new_status.value)

        return slot

    def delete_slot(self, slot_id: int, actor_id: int) -> None:
        slot = self._get_owned_slot(slot_id, actor_id)

        with self.locks.hold(f"doctor:{slot.doctor_id}"):
            with transaction(self.db):
                slot = self.slots.lock_by_id(slot_id)
                if not slot:
                    raise NotFoundError("Slot not found")
                # Appointments are never deleted, so any reference pins the slot
                if self.appointments.exists_for_slot(slot_id):
                    raise ConflictError("Cannot delete slot with existing appointment")
                self.slots.delete(slot)

        logger.info(f"Slot {slot_id} deleted by doctor {actor_id}")
        if self.audit:
            self.audit.record(actor_id, "slot.deleted", "slot", slot_id, {})

    def get_slot(self, slot_id: int) -> Slot:
        slot = self.slots.find_by_id(slot_id)
        if not slot:
            raise NotFoundError("Slot not found")
        return slot

    def list_doctor_slots(self, doctor_id: int) -> List[Slot]:
        return self.slots.find_by_doctor(doctor_id)

    def list_available_slots(self, doctor_id: int, day: date) -> List[Slot]:
        """Open slots on ``day`` that start in the future and are still bookable."""
        start_of_day = datetime.combine(day, time.min)
        end_of_day = start_of_day + timedelta(days=1)
        now = self.clock.now()

        busy = self.appointments.find_active_by_doctor(doctor_id)
        available = []
        for slot in self.slots.find_open_by_doctor_between(doctor_id, start_of_day, end_of_day):
            if slot.start_time <= now:
                continue
            if any(ranges_overlap(a.start_time, a.end_time, slot.start_time, slot.end_time)
                   for a in busy):
                continue
            available.append(slot)
        return available
