from sqlalchemy.orm import Session
from typing import List, Optional

from ..models.video_session import VideoSession

class VideoSessionRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, session_id: int) -> Optional[VideoSession]:
        return self.db.query(VideoSession).filter(
            VideoSession.id == session_id
        ).populate_existing().first()

    def find_by_appointment(self, appointment_id: int) -> List[VideoSession]:
        return self.db.query(VideoSession).filter(
            VideoSession.appointment_id == appointment_id
        ).order_by(VideoSession.id.desc()).all()

    def find_open(self, appointment_id: int) -> Optional[VideoSession]:
        """Most recent session of the appointment that has not ended."""
        return self.db.query(VideoSession).filter(
            VideoSession.appointment_id == appointment_id,
            VideoSession.ended_at.is_(None),
        ).order_by(VideoSession.id.desc()).populate_existing().first()

    def find_live(self, appointment_id: int) -> Optional[VideoSession]:
        return self.db.query(VideoSession).filter(
            VideoSession.appointment_id == appointment_id,
            VideoSession.started_at.isnot(None),
            VideoSession.ended_at.is_(None),
        ).order_by(VideoSession.id.desc()).populate_existing().first()

    def add(self, session: VideoSession) -> VideoSession:
        self.db.add(session)
        self.db.flush()
        return session
