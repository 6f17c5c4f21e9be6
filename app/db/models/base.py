# File: app/db/models/base.py
"""
Declarative base and shared columns for ShopDesk tables.

Every entity gets an integer key, a public uuid, an ``is_active`` flag and
UTC created/updated timestamps.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
import enum
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Boolean, MetaData
from sqlalchemy.orm import declarative_base

Base = declarative_base(metadata=MetaData())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModelValidationError(ValueError):
    """A column validator refused a value before it reached the database."""

    def __init__(self, model: Any, field: str, message: str):
        self.model = model
        self.field = field
        self.message = message
        super().__init__(f"{type(model).__name__}.{field}: {message}")


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class AbstractBase(Base):
    """Columns and helpers common to all ShopDesk entities."""

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(36), unique=True, default=lambda: str(uuid.uuid4()))
    is_active = Column(Boolean, default=True, nullable=False)

    def deactivate(self) -> None:
        self.is_active = False

    def to_dict(self) -> Dict[str, Any]:
        """Column values as JSON-friendly primitives."""
        return {column.name: _plain(getattr(self, column.name)) for column in self.__table__.columns}


def _plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    return value
