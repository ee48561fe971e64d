from sqlalchemy import Column, Integer, String, DateTime, JSON

from ..core.database import Base

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity = Column(String(50), nullable=False)
    entity_id = Column(String(50), nullable=False)
    meta = Column(JSON, nullable=True)
    at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity='{self.entity}:{self.entity_id}')>"
