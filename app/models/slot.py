from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum as SQLEnum
from sqlalchemy.sql import func
import enum

from ..core.database import Base

class SlotStatus(str, enum.Enum):
    OPEN = "open"
    BLOCKED = "blocked"

class Slot(Base):
    __tablename__ = "availability_slots"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    status = Column(SQLEnum(SlotStatus), nullable=False, default=SlotStatus.OPEN)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Slot(id={self.id}, doctor_id={self.doctor_id}, start='{self.start_time}', status='{self.status}')>"
