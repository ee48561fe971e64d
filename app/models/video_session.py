from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func

from ..core.database import Base

class VideoSession(Base):
    __tablename__ = "video_sessions"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, index=True)
    room_id = Column(String(64), nullable=False, unique=True)

    started_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    @property
    def is_live(self) -> bool:
        return self.started_at is not None and self.ended_at is None

    def __repr__(self):
        return f"<VideoSession(id={self.id}, appointment_id={self.appointment_id}, room='{self.room_id}')>"
