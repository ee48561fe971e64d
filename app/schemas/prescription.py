from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional

from ..models.prescription import PrescriptionItem

class PrescriptionCreate(BaseModel):
    items: List[PrescriptionItem] = Field(..., min_length=1)
    notes: str = ""

class PrescriptionUpdate(BaseModel):
    """Partial update. ``items``, when present, replaces the stored list as a whole."""
    items: Optional[List[PrescriptionItem]] = None
    notes: Optional[str] = None

class PrescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: int
    created_by_doctor_id: int
    items: List[PrescriptionItem]
    notes: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
