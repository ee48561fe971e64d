from pydantic import BaseModel, Field
from datetime import date
from typing import Optional

from ..core.security import UserRole

class ProfileUpdate(BaseModel):
    """Partial update; only the fields present in the payload are applied.

    ``name`` applies to everyone. Doctors may set specialty, license_number
    and bio; patients may set birthdate, phone and address.
    """
    name: Optional[str] = Field(None, max_length=200)

    specialty: Optional[str] = Field(None, max_length=100)
    license_number: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = None

    birthdate: Optional[date] = None
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=255)

class ProfileResponse(BaseModel):
    user_id: int
    email: str
    role: UserRole
    name: str

    specialty: Optional[str] = None
    license_number: Optional[str] = None
    bio: Optional[str] = None

    birthdate: Optional[date] = None
    phone: Optional[str] = None
    address: Optional[str] = None

class DoctorSummary(BaseModel):
    id: int
    name: str
    specialty: Optional[str] = None
    bio: Optional[str] = None
