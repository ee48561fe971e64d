from fastapi import APIRouter, Depends, Query
from datetime import datetime
from typing import List, Optional

from ...api.deps import get_audit_service, get_current_user
from ...models.user import User
from ...schemas.audit import AuditLogFilter, AuditLogResponse
from ...services.audit_service import AuditService

router = APIRouter(prefix="/audit-logs", tags=["Audit"])

@router.get("", response_model=List[AuditLogResponse])
def list_audit_logs(
    entity: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    audit_service: AuditService = Depends(get_audit_service),
):
    """Filtered audit trail (administrators only)."""
    filters = AuditLogFilter(
        entity=entity,
        entity_id=entity_id,
        action=action,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return audit_service.list_logs(current_user.id, filters)

@router.get("/users/{user_id}", response_model=List[AuditLogResponse])
def list_user_audit_logs(
    user_id: int,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    audit_service: AuditService = Depends(get_audit_service),
):
    return audit_service.list_user_logs(current_user.id, user_id, limit, offset)
