# app/api/deps.py
"""
Request dependencies for ShopDesk routes: the caller's identity and the
services bound to the request's session.
"""

import logging
from typing import Iterable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core import security
from app.core.config import settings
from app.core.events import global_event_bus
from app.db.models.enums import UserRole
from app.db.models.user import User
from app.db.session import get_db
from app.repositories.user_repository import UserRepository
from app.schemas.auth import Principal
from app.schemas.token import TokenPayload
from app.services.authorization import AuthorizationGate
from app.services.purchase_query_service import PurchaseQueryService
from app.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.TOKEN_URL)

_UNAUTHORIZED = {
    "status_code": status.HTTP_401_UNAUTHORIZED,
    "detail": "Could not validate credentials",
    "headers": {"WWW-Authenticate": "Bearer"},
}


def get_current_user(db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)) -> User:
    """Resolve the bearer token to its stored user."""
    try:
        claims = TokenPayload.model_validate(security.decode_access_token(token))
        user_id = int(claims.sub)
    except (JWTError, ValidationError, ValueError) as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise HTTPException(**_UNAUTHORIZED) from e
    if claims.type != security.TOKEN_TYPE:
        logger.warning(f"Rejected bearer token of type {claims.type!r}")
        raise HTTPException(**_UNAUTHORIZED)

    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        logger.warning(f"Token subject {user_id} has no user row")
        raise HTTPException(**_UNAUTHORIZED)
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        logger.warning(f"Deactivated user {current_user.id} presented a valid token")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user


def get_current_principal(
        current_user: User = Depends(get_current_active_user),
) -> Principal:
    """Role and branch of the caller, taken from the stored user row."""
    return Principal.from_user(current_user)


class RoleChecker:
    """
    Dependency that admits only callers holding one of the given roles.

    Usage:
        @router.get("/", dependencies=[Depends(RoleChecker([UserRole.MANAGER]))])
    """

    def __init__(self, allowed_roles: Iterable[UserRole]):
        self.allowed_roles = set(allowed_roles)

    def __call__(self, principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in self.allowed_roles:
            logger.warning(f"User {principal.user_id} with role {principal.role.value} denied by role check")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {principal.role.value} cannot use this endpoint",
            )
        return principal


def get_authorization_gate() -> AuthorizationGate:
    return AuthorizationGate()


def get_purchase_service(
        db: Session = Depends(get_db),
        gate: AuthorizationGate = Depends(get_authorization_gate),
) -> PurchaseService:
    return PurchaseService(session=db, gate=gate, event_bus=global_event_bus)


def get_purchase_query_service(
        db: Session = Depends(get_db),
        gate: AuthorizationGate = Depends(get_authorization_gate),
) -> PurchaseQueryService:
    return PurchaseQueryService(session=db, gate=gate)
