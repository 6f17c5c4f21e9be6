# File: app/core/config.py
"""
ShopDesk settings, read from the environment and an optional `.env` file.
"""

import json
import secrets
from typing import List, Optional, Union

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )

    # API settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "ShopDesk"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    PRODUCTION: bool = False

    # Security
    SECRET_KEY: str = secrets.token_urlsafe(32)
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 8  # one working day
    JWT_ALGORITHM: str = "HS256"
    TOKEN_URL: str = "/api/v1/auth/login"
    MIN_PASSWORD_LENGTH: int = 6

    # CORS
    BACKEND_CORS_ORIGINS: List[Union[AnyHttpUrl, str]] = []

    # Database
    DATABASE_URL: str = "sqlite:///./shopdesk.db"
    DB_ECHO: bool = False

    # Purchase workflow
    DEFAULT_MARKUP_PERCENTAGE: float = 30.0
    ENFORCE_UNIT_ABOVE_BUYING: bool = True
    # Roles restricted to their own branch; the rest have global access
    BRANCH_SCOPED_ROLES: List[str] = ["Sales"]
    DEFAULT_QUERY_LIMIT: int = 100

    # First manager account, created by init_db when missing
    FIRST_MANAGER_EMAIL: str = "manager@shopdesk.local"
    FIRST_MANAGER_PASSWORD: Optional[str] = None
    FIRST_MANAGER_NAME: str = "Head Manager"

    @field_validator("BACKEND_CORS_ORIGINS", "BRANCH_SCOPED_ROLES", mode="before")
    @classmethod
    def split_list_values(cls, v: Union[str, List[str]]) -> List[str]:
        """Accept a JSON array or a comma-separated string."""
        if not isinstance(v, str):
            return v or []
        try:
            parsed = json.loads(v)
        except json.JSONDecodeError:
            return [part.strip() for part in v.split(",") if part.strip()]
        return parsed if isinstance(parsed, list) else [str(parsed)]

    @field_validator("DEFAULT_MARKUP_PERCENTAGE")
    @classmethod
    def validate_markup(cls, v: float) -> float:
        """Markup must be non-negative."""
        if v < 0:
            raise ValueError("DEFAULT_MARKUP_PERCENTAGE must be >= 0")
        return v


settings = Settings()
