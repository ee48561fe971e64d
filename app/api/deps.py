from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List

from ..core.database import get_db
from ..core.runtime import Runtime
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, UserRole, TokenPayload
)
from ..models.user import User
from ..repositories.user_repository import UserRepository
from ..services.appointment_state import AppointmentStateMachine
from ..services.audit_service import AuditService
from ..services.auth_service import AuthService
from ..services.booking_service import BookingEngine
from ..services.chat_service import ChatService
from ..services.prescription_service import PrescriptionService
from ..services.profile_service import ProfileService
from ..services.slot_service import SlotService
from ..services.video_service import VideoService

def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime

def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload

def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from database."""
    if token_payload.user_id is None:
        raise AuthenticationError("Invalid token payload")

    user = UserRepository(db).find_by_id(token_payload.user_id)
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific user roles."""
    def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return current_user

    return role_checker

get_doctor_user = require_role([UserRole.DOCTOR])
get_patient_user = require_role([UserRole.PATIENT])

# Service factories: one per request, sharing the request's session
def get_auth_service(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)) -> AuthService:
    return AuthService(db, audit=runtime.audit)

def get_profile_service(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)) -> ProfileService:
    return ProfileService(db, locks=runtime.locks, audit=runtime.audit)

def get_slot_service(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)) -> SlotService:
    return SlotService(db, clock=runtime.clock, locks=runtime.locks, audit=runtime.audit)

def get_booking_engine(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)) -> BookingEngine:
    return BookingEngine(db, clock=runtime.clock, locks=runtime.locks, audit=runtime.audit)

def get_state_machine(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)) -> AppointmentStateMachine:
    return AppointmentStateMachine(db, locks=runtime.locks, audit=runtime.audit)

def get_chat_service(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)) -> ChatService:
    return ChatService(
        db,
        clock=runtime.clock,
        audit=runtime.audit,
        attachments=runtime.attachments,
        page_size=runtime.settings.MESSAGE_PAGE_SIZE,
    )

def get_prescription_service(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)) -> PrescriptionService:
    return PrescriptionService(db, audit=runtime.audit)

def get_video_service(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)) -> VideoService:
    return VideoService(
        db,
        clock=runtime.clock,
        locks=runtime.locks,
        audit=runtime.audit,
        token_issuer=runtime.token_issuer,
        ice_servers=runtime.settings.ICE_SERVERS,
    )

def get_audit_service(db: Session = Depends(get_db)) -> AuditService:
    return AuditService(db)
