from sqlalchemy import and_, or_
from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional

from ..models.appointment import Appointment, AppointmentStatus, ACTIVE_STATUSES

class AppointmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, appointment_id: int) -> Optional[Appointment]:
        return self.db.query(Appointment).filter(Appointment.id == appointment_id).first()

    def lock_by_id(self, appointment_id: int) -> Optional[Appointment]:
        """Re-read the row with a write lock, bypassing any stale identity-map state."""
        return self.db.query(Appointment).filter(
            Appointment.id == appointment_id
        ).with_for_update().populate_existing().first()

    def find_by_patient(self, patient_id: int) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.patient_id == patient_id
        ).order_by(Appointment.start_time.desc()).all()

    def find_by_doctor(self, doctor_id: int) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id
        ).order_by(Appointment.start_time.desc()).all()

    def find_overlapping(self, doctor_id: int, start: datetime, end: datetime) -> List[Appointment]:
        """Non-cancelled appointments of the doctor whose range overlaps [start, end].

        Partial overlap at either end, or containment in either direction,
        with inclusive endpoints.
        """
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status != AppointmentStatus.CANCELLED,
            or_(
                and_(Appointment.start_time <= start, Appointment.end_time >= start),
                and_(Appointment.start_time <= end, Appointment.end_time >= end),
                and_(Appointment.start_time >= start, Appointment.end_time <= end),
            ),
        ).all()

    def find_active_for_slot(self, slot_id: int) -> Optional[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.slot_id == slot_id,
            Appointment.status.in_(ACTIVE_STATUSES),
        ).first()

    def find_active_by_doctor(self, doctor_id: int) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status.in_(ACTIVE_STATUSES),
        ).all()

    def exists_for_slot(self, slot_id: int) -> bool:
        return self.db.query(Appointment.id).filter(
            Appointment.slot_id == slot_id
        ).first() is not None

    def add(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self.db.flush()
        return appointment
