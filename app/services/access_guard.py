from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..core.exceptions import ForbiddenError, NotFoundError
from ..models.appointment import Appointment
from ..repositories.appointment_repository import AppointmentRepository

logger = logging.getLogger(__name__)

class AccessGuard:
    """Decides whether an actor may touch an appointment and what hangs off it.

    Only the appointment's patient and doctor pass. Every chat, prescription
    and video operation calls this on each request.
    """

    def __init__(self, db: Session, appointments: Optional[AppointmentRepository] = None):
        self.appointments = appointments or AppointmentRepository(db)

    def authorize(self, appointment_id: int, actor_id: int) -> Appointment:
        appointment = self.appointments.find_by_id(appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")

        if not appointment.is_participant(actor_id):
            logger.warning(f"User {actor_id} denied access to appointment {appointment_id}")
            raise ForbiddenError("Not a participant of this appointment")

        return appointment

    def authorize_doctor(self, appointment_id: int, actor_id: int) -> Appointment:
        """Like authorize, but only the appointment's doctor passes."""
        appointment = self.authorize(appointment_id, actor_id)
        if appointment.doctor_id != actor_id:
            logger.warning(f"User {actor_id} is not the doctor of appointment {appointment_id}")
            raise ForbiddenError("Only the appointment's doctor may do this")
        return appointment
