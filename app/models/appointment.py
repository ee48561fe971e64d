from sqlalchemy import Column, Integer, ForeignKey, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
import enum

from ..core.database import Base

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

# Statuses that still occupy the doctor's timeline
ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
TERMINAL_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED)

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # Participants
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    slot_id = Column(Integer, ForeignKey("availability_slots.id"), nullable=True, index=True)

    # Appointment details
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    status = Column(SQLEnum(AppointmentStatus), nullable=False, default=AppointmentStatus.PENDING)
    notes = Column(Text, nullable=False, default="")

    # Tracking
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def is_participant(self, user_id: int) -> bool:
        return user_id in (self.patient_id, self.doctor_id)

    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, status='{self.status}')>"
