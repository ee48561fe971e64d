"""
Process-wide collaborators, built once when the application starts and
handed explicitly to each service.
"""
from dataclasses import dataclass
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from typing import Optional
import logging
import redis

from .clock import Clock, SystemClock
from .config import Settings
from .database import create_db_engine, create_session_factory
from .locks import LocalLockRegistry, LockRegistry, RedisLockRegistry
from ..services.attachment_store import AttachmentStore, LocalAttachmentStore
from ..services.audit_service import AuditDispatcher
from ..services.video_service import JWTSignalingTokenIssuer, SignalingTokenIssuer

logger = logging.getLogger(__name__)

@dataclass
class Runtime:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    clock: Clock
    locks: LockRegistry
    audit: AuditDispatcher
    attachments: AttachmentStore
    token_issuer: SignalingTokenIssuer

    def start(self):
        self.audit.start()

    def stop(self):
        self.audit.stop()
        self.engine.dispose()

def build_runtime(settings: Settings, clock: Optional[Clock] = None) -> Runtime:
    clock = clock or SystemClock()
    engine = create_db_engine(settings.get_database_url)
    session_factory = create_session_factory(engine)

    if settings.TESTING:
        # Single process in tests; in-process locks are enough
        locks = LocalLockRegistry(timeout=settings.LOCK_TIMEOUT_SECONDS)
    else:
        locks = RedisLockRegistry(
            redis.from_url(settings.REDIS_URL, decode_responses=True),
            timeout=settings.LOCK_TIMEOUT_SECONDS,
        )

    return Runtime(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        clock=clock,
        locks=locks,
        audit=AuditDispatcher(
            session_factory,
            clock=clock,
            queue_size=settings.AUDIT_QUEUE_SIZE,
            workers=settings.AUDIT_WORKERS,
        ),
        attachments=LocalAttachmentStore(settings.UPLOAD_PATH),
        token_issuer=JWTSignalingTokenIssuer(clock, settings.VIDEO_TOKEN_EXPIRE_MINUTES),
    )
