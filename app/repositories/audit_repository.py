from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional

from ..models.audit_log import AuditLog

class AuditRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, entry: AuditLog) -> AuditLog:
        self.db.add(entry)
        self.db.flush()
        return entry

    def find(
        self,
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
        user_id: Optional[int] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AuditLog]:
        query = self.db.query(AuditLog)
        if entity:
            query = query.filter(AuditLog.entity == entity)
        if entity_id:
            query = query.filter(AuditLog.entity_id == entity_id)
        if action:
            query = query.filter(AuditLog.action == action)
        if user_id is not None:
            query = query.filter(AuditLog.user_id == user_id)
        if since:
            query = query.filter(AuditLog.at >= since)
        if until:
            query = query.filter(AuditLog.at <= until)
        return query.order_by(AuditLog.at.desc(), AuditLog.id.desc()).limit(limit).offset(offset).all()
