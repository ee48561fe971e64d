from sqlalchemy.orm import Session
from datetime import datetime
from typing import List

from ..models.message import Message

class MessageRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, message: Message) -> Message:
        self.db.add(message)
        self.db.flush()
        return message

    def find_by_appointment(self, appointment_id: int, limit: int, offset: int = 0) -> List[Message]:
        return self.db.query(Message).filter(
            Message.appointment_id == appointment_id
        ).order_by(
            Message.created_at.desc(), Message.id.desc()
        ).limit(limit).offset(offset).all()

    def _unread_from_others(self, appointment_id: int, reader_id: int):
        # The one definition of "unread" shared by counting and marking
        return self.db.query(Message).filter(
            Message.appointment_id == appointment_id,
            Message.sender_user_id != reader_id,
            Message.read_at.is_(None),
        )

    def mark_as_read(self, appointment_id: int, reader_id: int, read_at: datetime) -> int:
        return self._unread_from_others(appointment_id, reader_id).update(
            {Message.read_at: read_at}, synchronize_session="fetch"
        )

    def count_unread(self, appointment_id: int, reader_id: int) -> int:
        return self._unread_from_others(appointment_id, reader_id).count()
