# File: app/schemas/token.py
"""Login request and bearer token schemas."""

from typing import Optional
from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class Token(BaseModel):
    """OAuth2-style token response; ``expires_in`` is in seconds."""

    access_token: str
    token_type: str = "bearer"
    expires_in: Optional[int] = None


class TokenPayload(BaseModel):
    """Claims read back from a verified access token."""

    sub: str = Field(..., description="Id of the user the token was issued to")
    exp: int
    type: Optional[str] = None
