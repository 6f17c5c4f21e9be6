# File: app/services/user_service.py
"""
Staff accounts: creating Sales, Manager and Finance users and checking
their credentials at login.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import AuthenticationException, BusinessRuleException, ValidationException
from app.core.security import get_password_hash, verify_password
from app.db.models.base import utcnow
from app.db.models.enums import UserRole
from app.db.models.user import User
from app.repositories.user_repository import UserRepository
from app.services.base_service import BaseService

logger = logging.getLogger(__name__)


class UserService(BaseService[User]):

    def __init__(self, session: Session, repository: Optional[UserRepository] = None):
        super().__init__(session, repository=repository or UserRepository(session))

    def get_by_email(self, email: str) -> Optional[User]:
        return self.repository.get_by_email(email)

    def create_user(
        self,
        email: str,
        password: str,
        full_name: str,
        role: UserRole,
        branch_id: Optional[int] = None,
    ) -> User:
        """
        Store a new staff account with a bcrypt password hash.

        Sales accounts must name their branch; Manager and Finance accounts
        may leave it empty.

        Raises:
            ValidationException: Duplicate email, or Sales without a branch
            BusinessRuleException: Password shorter than MIN_PASSWORD_LENGTH
        """
        if self.get_by_email(email):
            logger.warning(f"Refusing second account for {email}")
            raise ValidationException(
                "User with this email already exists", {"email": ["Already registered"]}
            )
        if len(password) < settings.MIN_PASSWORD_LENGTH:
            raise BusinessRuleException(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long",
                rule="password_length",
            )
        if role == UserRole.SALES and branch_id is None:
            raise ValidationException(
                "Sales users must be assigned to a branch", {"branch_id": ["Required for Sales"]}
            )

        with self.transaction():
            user = self.repository.create(
                {
                    "email": email,
                    "full_name": full_name,
                    "hashed_password": get_password_hash(password),
                    "role": role,
                    "branch_id": branch_id,
                    "is_active": True,
                }
            )
        self._log_operation("create", "User", user.id, details={"role": role.value, "branch_id": branch_id})
        return user

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """Return the active user owning ``email`` and ``password``, else None."""
        user = self.get_by_email(email)
        if user is None:
            logger.info(f"Login rejected for unknown email {email}")
            return None
        if not user.is_active:
            logger.warning(f"Login rejected for deactivated user {user.id}")
            return None
        if not verify_password(password, user.hashed_password):
            logger.warning(f"Login rejected for user {user.id}: wrong password")
            return None

        with self.transaction():
            user.last_login = utcnow()
        logger.info(f"User {user.id} ({user.role.value}) logged in")
        return user

    def login(self, email: str, password: str) -> User:
        """Like ``authenticate_user`` but raises AuthenticationException on failure."""
        user = self.authenticate_user(email, password)
        if user is None:
            raise AuthenticationException()
        return user
