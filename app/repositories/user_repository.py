from sqlalchemy.orm import Session
from typing import List, Optional, Protocol

from ..core.security import UserRole
from ..models.user import User

class UserDirectory(Protocol):
    """Identity and role lookups the booking core depends on."""

    def find_by_id(self, user_id: int) -> Optional[User]:
        ...

    def lock_by_id(self, user_id: int) -> Optional[User]:
        ...

class UserRepository:
    """User directory backed by the users table."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def lock_by_id(self, user_id: int) -> Optional[User]:
        """Load the user row with a write lock held until the transaction ends."""
        return self.db.query(User).filter(User.id == user_id).with_for_update().first()

    def find_doctors(self) -> List[User]:
        """Active doctors, ordered by name."""
        return self.db.query(User).filter(
            User.role == UserRole.DOCTOR,
            User.is_active.is_(True),
        ).order_by(User.name, User.id).all()

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user
