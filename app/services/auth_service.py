from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..core.database import transaction
from ..core.exceptions import ConflictError
from ..models.user import User
from ..core.security import (
    verify_password, get_password_hash, create_token_pair,
    verify_token, AuthenticationError
)
from ..repositories.user_repository import UserRepository
from ..schemas.auth import UserLogin, UserRegister, TokenResponse, UserResponse
from .audit_service import AuditSink

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session, audit: Optional[AuditSink] = None,
                 users: Optional[UserRepository] = None):
        self.db = db
        self.audit = audit
        self.users = users or UserRepository(db)

    def register_user(self, user_data: UserRegister) -> User:
        """Register a new patient or doctor."""
        if self.users.find_by_email(user_data.email):
            raise ConflictError("Email already registered")

        with transaction(self.db):
            new_user = self.users.add(User(
                email=user_data.email,
                password_hash=get_password_hash(user_data.password),
                role=user_data.role,
                name=user_data.name,
                is_active=True,
            ))

        logger.info(f"Registered {new_user.role.value} {new_user.id}")
        if self.audit:
            self.audit.record(new_user.id, "user.registered", "user", new_user.id,
                              {"role": new_user.role.value})
        return new_user

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return tokens."""
        user = self.users.find_by_email(login_data.email)

        if not user or not verify_password(login_data.password, user.password_hash):
            logger.warning(f"Failed login for {login_data.email}")
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        return self._issue_tokens(user)

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Refresh access token using refresh token."""
        token_payload = verify_token(refresh_token)
        if not token_payload or token_payload.token_type != "refresh":
            raise AuthenticationError("Invalid refresh token")

        user = self.users.find_by_id(token_payload.user_id) if token_payload.user_id else None
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")

        return self._issue_tokens(user)

    def _issue_tokens(self, user: User) -> TokenResponse:
        tokens = create_token_pair(user.id, user.email, user.role)
        return TokenResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            user=UserResponse.model_validate(user)
        )
