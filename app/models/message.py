from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text
from sqlalchemy.sql import func

from ..core.database import Base

class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, index=True)
    sender_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    body = Column(Text, nullable=False, default="")
    attachment_url = Column(String(500), nullable=True)
    read_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Message(id={self.id}, appointment_id={self.appointment_id}, sender={self.sender_user_id})>"
