from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional

from ..models.appointment import AppointmentStatus

class AppointmentCreate(BaseModel):
    doctor_id: int
    start_time: datetime
    end_time: datetime
    slot_id: Optional[int] = None
    notes: str = Field("", max_length=2000)

class AppointmentStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = Field(None, max_length=2000)

class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    doctor_id: int
    slot_id: Optional[int] = None
    status: AppointmentStatus
    notes: str
    start_time: datetime
    end_time: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
