"""
Audit trail for booking operations.

Writes go through ``AuditDispatcher``: a bounded queue drained by a small
pool of worker threads, each writing in its own database session. Callers
never wait on audit I/O and never see audit failures.
"""
from dataclasses import dataclass, field
from datetime import datetime
from sqlalchemy.orm import Session, sessionmaker
from typing import Any, Dict, List, Optional, Protocol
import logging
import queue
import threading

from ..core.clock import Clock, SystemClock, to_utc_naive
from ..core.database import transaction
from ..core.exceptions import ForbiddenError, NotFoundError
from ..core.security import UserRole
from ..models.audit_log import AuditLog
from ..repositories.audit_repository import AuditRepository
from ..repositories.user_repository import UserRepository
from ..schemas.audit import AuditLogFilter

logger = logging.getLogger(__name__)

class AuditSink(Protocol):
    def record(
        self,
        actor_id: Optional[int],
        action: str,
        entity_type: str,
        entity_id: Any,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...

@dataclass(frozen=True)
class AuditEvent:
    actor_id: Optional[int]
    action: str
    entity_type: str
    entity_id: str
    at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

_STOP = object()

class AuditDispatcher:
    """Best-effort, non-blocking AuditSink backed by a bounded worker pool."""

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Optional[Clock] = None,
        queue_size: int = 1000,
        workers: int = 2,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.worker_count = max(1, workers)
        self._queue: "queue.Queue" = queue.Queue(maxsize=queue_size)
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self.dropped = 0
        self.failed = 0

    def start(self):
        with self._lock:
            if self._threads:
                return
            for index in range(self.worker_count):
                thread = threading.Thread(
                    target=self._run, name=f"audit-worker-{index}", daemon=True
                )
                thread.start()
                self._threads.append(thread)
        logger.info(f"Audit dispatcher started with {self.worker_count} workers")

    def stop(self, timeout: float = 5.0):
        """Drain queued events, then stop the workers."""
        with self._lock:
            threads, self._threads = self._threads, []
        for _ in threads:
            self._queue.put(_STOP)
        for thread in threads:
            thread.join(timeout)
        logger.info("Audit dispatcher stopped")

    def flush(self):
        """Block until every queued event has been handled."""
        self._queue.join()

    def record(self, actor_id, action, entity_type, entity_id, metadata=None) -> None:
        try:
            event = AuditEvent(
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                at=self.clock.now(),
                metadata=dict(metadata or {}),
            )
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            logger.warning(f"Audit queue full, dropping {action} on {entity_type}:{entity_id}")
        except Exception:
            self.dropped += 1
            logger.exception(f"Could not enqueue audit event {action}")

    def _run(self):
        while True:
            event = self._queue.get()
            try:
                if event is _STOP:
                    return
                self._write(event)
            except Exception:
                self.failed += 1
                logger.warning(f"Failed to write audit log for {event.action}", exc_info=True)
            finally:
                self._queue.task_done()

    def _write(self, event: AuditEvent):
        db = self.session_factory()
        try:
            with transaction(db):
                AuditRepository(db).add(AuditLog(
                    user_id=event.actor_id,
                    action=event.action,
                    entity=event.entity_type,
                    entity_id=event.entity_id,
                    meta=event.metadata or None,
                    at=event.at,
                ))
        finally:
            db.close()

class AuditService:
    """Read access to the audit trail."""

    def __init__(self, db: Session, users: Optional[UserRepository] = None,
                 audit_logs: Optional[AuditRepository] = None):
        self.db = db
        self.users = users or UserRepository(db)
        self.audit_logs = audit_logs or AuditRepository(db)

    def _require_user(self, actor_id: int):
        actor = self.users.find_by_id(actor_id)
        if not actor:
            raise NotFoundError("User not found")
        return actor

    def list_logs(self, actor_id: int, filters: AuditLogFilter) -> List[AuditLog]:
        """Filtered audit trail; administrators only."""
        actor = self._require_user(actor_id)
        if actor.role != UserRole.ADMIN:
            raise ForbiddenError("Insufficient permissions")

        return self.audit_logs.find(
            entity=filters.entity,
            entity_id=filters.entity_id,
            action=filters.action,
            since=to_utc_naive(filters.start_date),
            until=to_utc_naive(filters.end_date),
            limit=filters.limit,
            offset=filters.offset,
        )

    def list_user_logs(self, actor_id: int, target_user_id: int,
                       limit: int = 100, offset: int = 0) -> List[AuditLog]:
        """Actions performed by one user; visible to that user and administrators."""
        actor = self._require_user(actor_id)
        if actor.id != target_user_id and actor.role != UserRole.ADMIN:
            raise ForbiddenError("Insufficient permissions")

        return self.audit_logs.find(user_id=target_user_id, limit=limit, offset=offset)
