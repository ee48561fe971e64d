from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..core.clock import Clock, SystemClock
from ..core.database import transaction
from ..core.exceptions import ValidationError
from ..models.message import Message
from ..repositories.message_repository import MessageRepository
from .access_guard import AccessGuard
from .attachment_store import AttachmentStore
from .audit_service import AuditSink

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200

class ChatService:
    """Messages between the two participants of an appointment.

    Read state is per message and flips only through mark_as_read, which
    covers every unread message the *other* participant wrote. Unread
    counts are computed from the same predicate.
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        audit: Optional[AuditSink] = None,
        attachments: Optional[AttachmentStore] = None,
        messages: Optional[MessageRepository] = None,
        guard: Optional[AccessGuard] = None,
        page_size: int = 50,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.audit = audit
        self.attachments = attachments
        self.messages = messages or MessageRepository(db)
        self.guard = guard or AccessGuard(db)
        self.page_size = page_size

    def send_message(self, appointment_id: int, sender_id: int, body: str,
                     attachment_url: Optional[str] = None) -> Message:
        self.guard.authorize(appointment_id, sender_id)

        body = (body or "").strip()
        if not body and not attachment_url:
            raise ValidationError("Message body or attachment is required")

        with transaction(self.db):
            message = self.messages.add(Message(
                appointment_id=appointment_id,
                sender_user_id=sender_id,
                body=body,
                attachment_url=attachment_url,
                created_at=self.clock.now(),
            ))

        logger.info(f"Message {message.id} sent on appointment {appointment_id} by user {sender_id}")
        if self.audit:
            self.audit.record(sender_id, "message.sent", "message", message.id, {
                "appointment_id": appointment_id,
                "has_attachment": attachment_url is not None,
            })
        return message

    def list_messages(self, appointment_id: int, actor_id: int,
                      limit: Optional[int] = None, offset: int = 0) -> List[Message]:
        self.guard.authorize(appointment_id, actor_id)
        limit = limit or self.page_size
        if limit < 1 or offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")
        return self.messages.find_by_appointment(appointment_id, min(limit, MAX_PAGE_SIZE), offset)

    def upload_attachment(self, appointment_id: int, actor_id: int,
                          filename: str, data: bytes) -> str:
        self.guard.authorize(appointment_id, actor_id)
        if self.attachments is None:
            raise ValidationError("Attachments are not enabled")
        if not data:
            raise ValidationError("Attachment is empty")
        return self.attachments.save(f"{appointment_id}_{filename}", data)

    def mark_as_read(self, appointment_id: int, actor_id: int) -> int:
        """Mark everything the other participant sent as read; returns how many flipped."""
        self.guard.authorize(appointment_id, actor_id)
        with transaction(self.db):
            updated = self.messages.mark_as_read(appointment_id, actor_id, self.clock.now())
        logger.info(f"User {actor_id} read {updated} messages on appointment {appointment_id}")
        return updated

    def unread_count(self, appointment_id: int, actor_id: int) -> int:
        self.guard.authorize(appointment_id, actor_id)
        return self.messages.count_unread(appointment_id, actor_id)
