# File: app/core/security.py
"""
Password hashing and bearer token helpers.

Tokens carry only the user id; role and branch are read from the user
row on every request.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Union, Optional

from jose import jwt
from passlib.context import CryptContext
from app.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALGORITHM = settings.JWT_ALGORITHM
TOKEN_TYPE = "access"


def create_access_token(subject: Union[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a token for ``subject`` (a user id).

    The lifetime defaults to ACCESS_TOKEN_EXPIRE_MINUTES.
    """
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(subject),
        "type": TOKEN_TYPE,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify the signature and expiry of ``token`` and return its claims.

    Raises:
        jose.JWTError: Tampered, expired or malformed token
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)
