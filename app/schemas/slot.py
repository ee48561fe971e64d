from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional

from ..models.slot import SlotStatus

class SlotCreate(BaseModel):
    start_time: datetime
    end_time: datetime

class SlotUpdate(BaseModel):
    """Partial update; a field left out of the payload is not touched."""
    status: Optional[SlotStatus] = None

class SlotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    start_time: datetime
    end_time: datetime
    status: SlotStatus
