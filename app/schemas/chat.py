from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional

class MessageCreate(BaseModel):
    body: str = Field("", max_length=5000)
    attachment_url: Optional[str] = Field(None, max_length=500)

class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: int
    sender_user_id: int
    body: str
    attachment_url: Optional[str] = None
    read_at: Optional[datetime] = None
    created_at: datetime

class UnreadCountResponse(BaseModel):
    appointment_id: int
    unread: int

class MarkReadResponse(BaseModel):
    appointment_id: int
    marked: int

class AttachmentResponse(BaseModel):
    url: str
