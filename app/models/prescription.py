from sqlalchemy import Column, Integer, ForeignKey, DateTime, Text
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Sequence
import json

from ..core.database import Base

# Version written into every stored item envelope
PRESCRIPTION_ITEMS_VERSION = 1

class PrescriptionItem(BaseModel):
    """One medication line of a prescription."""
    model_config = ConfigDict(frozen=True)

    medication_name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    frequency: str = Field(..., min_length=1)
    duration: str = Field(..., min_length=1)
    instructions: str = ""

def encode_items(items: Sequence[PrescriptionItem]) -> str:
    """Serialize an item list into the versioned envelope stored in the database."""
    return json.dumps({
        "version": PRESCRIPTION_ITEMS_VERSION,
        "items": [item.model_dump() for item in items],
    })

def decode_items(raw: str) -> List[PrescriptionItem]:
    """Parse a stored envelope back into items; any other layout is an error."""
    data = json.loads(raw)
    if not isinstance(data, dict) or data.get("version") != PRESCRIPTION_ITEMS_VERSION:
        version = data.get("version") if isinstance(data, dict) else None
        raise ValueError(f"Unsupported prescription items version: {version!r}")
    return [PrescriptionItem.model_validate(entry) for entry in data.get("items", [])]

class PrescriptionItemsType(TypeDecorator):
    """Text column holding a list of PrescriptionItem as a versioned JSON envelope."""
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[Sequence[PrescriptionItem]], dialect):
        if value is None:
            return None
        return encode_items(value)

    def process_result_value(self, value: Optional[str], dialect):
        if value is None:
            return None
        return decode_items(value)

class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, index=True)
    created_by_doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    items = Column(PrescriptionItemsType, nullable=False)
    notes = Column(Text, nullable=False, default="")

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Prescription(id={self.id}, appointment_id={self.appointment_id}, items={len(self.items or [])})>"
