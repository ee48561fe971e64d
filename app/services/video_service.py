from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import List, Optional, Protocol, Sequence, Tuple
import logging
import secrets

from ..core.clock import Clock, SystemClock
from ..core.database import transaction
from ..core.exceptions import ConflictError, NotFoundError
from ..core.locks import LocalLockRegistry, LockRegistry
from ..core.security import create_room_token
from ..models.video_session import VideoSession
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.video_session_repository import VideoSessionRepository
from ..schemas.video import SignalingInfo
from .access_guard import AccessGuard
from .audit_service import AuditSink

logger = logging.getLogger(__name__)

class SignalingTokenIssuer(Protocol):
    def issue_token(self, room_id: str, actor_id: int) -> Tuple[str, datetime]:
        ...

class JWTSignalingTokenIssuer:
    """Issues short-lived room tokens signed with the application secret."""

    def __init__(self, clock: Optional[Clock] = None, expire_minutes: int = 60):
        self.clock = clock or SystemClock()
        self.expire_minutes = expire_minutes

    def issue_token(self, room_id: str, actor_id: int) -> Tuple[str, datetime]:
        expires_at = self.clock.now() + timedelta(minutes=self.expire_minutes)
        return create_room_token(room_id, actor_id, expires_at), expires_at

class VideoService:
    """Video session lifecycle for an appointment.

    A session is created, started, then ended. While one session of an
    appointment has not ended, no other can be created, and at most one
    can be live at a time.
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        locks: Optional[LockRegistry] = None,
        audit: Optional[AuditSink] = None,
        token_issuer: Optional[SignalingTokenIssuer] = None,
        ice_servers: Sequence[str] = (),
        sessions: Optional[VideoSessionRepository] = None,
        appointments: Optional[AppointmentRepository] = None,
        guard: Optional[AccessGuard] = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.locks = locks or LocalLockRegistry()
        self.audit = audit
        self.token_issuer = token_issuer or JWTSignalingTokenIssuer(self.clock)
        self.ice_servers = list(ice_servers)
        self.sessions = sessions or VideoSessionRepository(db)
        self.appointments = appointments or AppointmentRepository(db)
        self.guard = guard or AccessGuard(db, appointments=self.appointments)

    def _load(self, session_id: int) -> VideoSession:
        session = self.sessions.find_by_id(session_id)
        if not session:
            raise NotFoundError("Video session not found")
        return session

    def _authorize_session(self, session_id: int, actor_id: int) -> VideoSession:
        session = self._load(session_id)
        self.guard.authorize(session.appointment_id, actor_id)
        return session

    def _record(self, actor_id, action, session: VideoSession):
        if self.audit:
            self.audit.record(actor_id, action, "video_session", session.id, {
                "appointment_id": session.appointment_id,
                "room_id": session.room_id,
            })

    def create_session(self, appointment_id: int, actor_id: int) -> VideoSession:
        self.guard.authorize(appointment_id, actor_id)

        with self.locks.hold(f"appointment:{appointment_id}"):
            with transaction(self.db):
                # Transitions take the same lock, so the status read here is current
                appointment = self.appointments.lock_by_id(appointment_id)
                if not appointment.is_active:
                    raise ConflictError(f"Appointment is {appointment.status.value}")

                existing = self.sessions.find_open(appointment_id)
                if existing:
                    raise ConflictError("A video session for this appointment is already open")

                session = self.sessions.add(VideoSession(
                    appointment_id=appointment_id,
                    room_id=secrets.token_hex(16),
                ))

        logger.info(f"Video session {session.id} created for appointment {appointment_id}")
        self._record(actor_id, "video_session.created", session)
        return session

    def start_session(self, session_id: int, actor_id: int) -> VideoSession:
        session = self._authorize_session(session_id, actor_id)

        with self.locks.hold(f"appointment:{session.appointment_id}"):
            with transaction(self.db):
                session = self._load(session_id)
                if session.started_at is not None:
                    raise ConflictError("Video session already started")
                live = self.sessions.find_live(session.appointment_id)
                if live and live.id != session.id:
                    raise ConflictError("Another video session is live for this appointment")
                session.started_at = self.clock.now()

        logger.info(f"Video session {session_id} started by user {actor_id}")
        self._record(actor_id, "video_session.started", session)
        return session

    def end_session(self, session_id: int, actor_id: int) -> VideoSession:
        session = self._authorize_session(session_id, actor_id)

        with self.locks.hold(f"appointment:{session.appointment_id}"):
            with transaction(self.db):
                session = self._load(session_id)
                if session.started_at is None:
                    raise ConflictError("Video session has not started")
                if session.ended_at is not None:
                    raise ConflictError("Video session already ended")
                session.ended_at = self.clock.now()

        logger.info(f"Video session {session_id} ended by user {actor_id}")
        self._record(actor_id, "video_session.ended", session)
        return session

    def get_session(self, session_id: int, actor_id: int) -> VideoSession:
        return self._authorize_session(session_id, actor_id)

    def list_sessions(self, appointment_id: int, actor_id: int) -> List[VideoSession]:
        self.guard.authorize(appointment_id, actor_id)
        return self.sessions.find_by_appointment(appointment_id)

    def signaling_info(self, session_id: int, actor_id: int) -> SignalingInfo:
        session = self._authorize_session(session_id, actor_id)
        if session.ended_at is not None:
            raise ConflictError("Video session already ended")

        token, expires_at = self.token_issuer.issue_token(session.room_id, actor_id)
        return SignalingInfo(
            room_id=session.room_id,
            ice_servers=self.ice_servers,
            room_token=token,
            expires_at=expires_at,
        )
