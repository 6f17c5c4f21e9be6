"""
Login routes exchanging staff credentials for a bearer token.
"""

import logging
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.api import deps
from app.core import security
from app.core.config import settings
from app.core.exceptions import AuthenticationException
from app.schemas.token import LoginRequest, Token
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


def _issue_token(db: Session, email: str, password: str) -> Token:
    try:
        user = UserService(db).login(email, password)
    except AuthenticationException as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.to_dict(),
            headers={"WWW-Authenticate": "Bearer"},
        )

    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return Token(
        access_token=security.create_access_token(user.id, expires_delta=expires),
        token_type="bearer",
        expires_in=int(expires.total_seconds()),
    )


@router.post("/login", response_model=Token)
def login_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(deps.get_db),
) -> Any:
    """OAuth2 password form login; ``username`` holds the staff email."""
    return _issue_token(db, form_data.username, form_data.password)


@router.post("/login/json", response_model=Token)
def login_json(
    credentials: LoginRequest,
    db: Session = Depends(deps.get_db),
) -> Any:
    """Same as /login, for clients posting JSON."""
    return _issue_token(db, credentials.email, credentials.password)
