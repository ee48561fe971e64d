from sqlalchemy.orm import Session
from typing import Dict, FrozenSet, Optional, Tuple
import logging

from ..core.database import transaction
from ..core.exceptions import (
    ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
)
from ..core.locks import LocalLockRegistry, LockRegistry
from ..core.security import UserRole
from ..models.appointment import Appointment, AppointmentStatus, TERMINAL_STATUSES
from ..repositories.appointment_repository import AppointmentRepository
from .audit_service import AuditSink

logger = logging.getLogger(__name__)

PATIENT = UserRole.PATIENT
DOCTOR = UserRole.DOCTOR

# (from, to) -> participant roles allowed to perform the move
TRANSITIONS: Dict[Tuple[AppointmentStatus, AppointmentStatus], FrozenSet[UserRole]] = {
    (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED): frozenset({DOCTOR}),
    (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED): frozenset({PATIENT, DOCTOR}),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED): frozenset({PATIENT, DOCTOR}),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED): frozenset({DOCTOR}),
}

def participant_role(appointment: Appointment, actor_id: int) -> Optional[UserRole]:
    if actor_id == appointment.doctor_id:
        return DOCTOR
    if actor_id == appointment.patient_id:
        return PATIENT
    return None

class AppointmentStateMachine:
    """Applies status changes according to TRANSITIONS.

    Each call re-reads the appointment under ``appointment:<id>`` and a row
    lock, so concurrent transitions on one appointment resolve one at a time.
    """

    def __init__(
        self,
        db: Session,
        locks: Optional[LockRegistry] = None,
        audit: Optional[AuditSink] = None,
        appointments: Optional[AppointmentRepository] = None,
    ):
        self.db = db
        self.locks = locks or LocalLockRegistry()
        self.audit = audit
        self.appointments = appointments or AppointmentRepository(db)

    def transition(self, appointment_id: int, actor_id: int, target,
                   notes: Optional[str] = None) -> Appointment:
        try:
            target = AppointmentStatus(target)
        except ValueError:
            raise ValidationError(f"Invalid appointment status: {target}")

        with self.locks.hold(f"appointment:{appointment_id}"):
            with transaction(self.db):
                appointment = self.appointments.lock_by_id(appointment_id)
                if not appointment:
                    raise NotFoundError("Appointment not found")

                role = participant_role(appointment, actor_id)
                if role is None:
                    logger.warning(f"User {actor_id} tried to change appointment {appointment_id}")
                    raise ForbiddenError("Not a participant of this appointment")

                current = appointment.status
                if current in TERMINAL_STATUSES:
                    raise InvalidTransitionError(
                        f"Appointment is {current.value}; no further changes allowed"
                    )

                allowed_roles = TRANSITIONS.get((current, target))
                if allowed_roles is None:
                    raise InvalidTransitionError(
                        f"Cannot move appointment from {current.value} to {target.value}"
                    )
                if role not in allowed_roles:
                    logger.warning(
                        f"{role.value} {actor_id} may not move appointment "
                        f"{appointment_id} to {target.value}"
                    )
                    raise ForbiddenError(f"A {role.value} cannot mark an appointment {target.value}")

                appointment.status = target
                if notes is not None:
                    appointment.notes = notes

        logger.info(f"Appointment {appointment_id}: {current.value} -> {target.value} by user {actor_id}")
        if self.audit:
            self.audit.record(actor_id, f"appointment.{target.value}", "appointment", appointment_id, {
                "from": current.value,
                "to": target.value,
            })
        return appointment

    def confirm(self, appointment_id: int, actor_id: int) -> Appointment:
        return self.transition(appointment_id, actor_id, AppointmentStatus.CONFIRMED)

    def cancel(self, appointment_id: int, actor_id: int, notes: Optional[str] = None) -> Appointment:
        return self.transition(appointment_id, actor_id, AppointmentStatus.CANCELLED, notes)

    def complete(self, appointment_id: int, actor_id: int, notes: Optional[str] = None) -> Appointment:
        return self.transition(appointment_id, actor_id, AppointmentStatus.COMPLETED, notes)
