from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text
from sqlalchemy.sql import func

from ..core.database import Base

class DoctorProfile(Base):
    __tablename__ = "doctor_profiles"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)

    # Professional information
    specialty = Column(String(100), nullable=True)
    license_number = Column(String(50), nullable=True)
    bio = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<DoctorProfile(user_id={self.user_id}, specialty='{self.specialty}')>"

class PatientProfile(Base):
    __tablename__ = "patient_profiles"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)

    # Personal information
    birthdate = Column(Date, nullable=True)

    # Contact information
    phone = Column(String(20), nullable=True)
    address = Column(String(255), nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<PatientProfile(user_id={self.user_id})>"
