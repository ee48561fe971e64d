from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import List, Optional

class VideoSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: int
    room_id: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

class SignalingInfo(BaseModel):
    room_id: str
    ice_servers: List[str]
    room_token: str
    expires_at: datetime
