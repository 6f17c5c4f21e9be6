# File: app/services/base_service.py
"""
Shared plumbing for ShopDesk services: the unit-of-work scope, error
translation, audit logging and event publishing.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Iterator, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    ConcurrentModificationException,
    DatabaseException,
    ShopDeskException,
)
from app.repositories.base_repository import BaseRepository

T = TypeVar("T")
logger = logging.getLogger(__name__)


class BaseService(Generic[T]):
    """
    Base class of the ShopDesk services.

    A service owns the session's commit boundary; its repositories only
    add and flush.

    Args:
        session: Session shared by the service and its repositories
        repository: Primary repository of the service
        event_bus: Bus receiving events after successful commits
    """

    def __init__(self, session: Session, repository: Optional[BaseRepository] = None, event_bus=None):
        self.session = session
        self.repository = repository
        self.event_bus = event_bus

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Run the enclosed block as one unit of work.

        Commits on success. On failure rolls back, then re-raises ShopDesk
        errors as they are and persistence errors as their ShopDesk
        counterpart.
        """
        try:
            yield
            self.session.commit()
        except ShopDeskException as e:
            self.session.rollback()
            logger.info(f"Rolled back after {e.code}: {e.message}")
            raise
        except Exception as e:
            self.session.rollback()
            logger.error(f"Rolled back after unexpected error: {e}", exc_info=True)
            translated = self._transform_error(e)
            if translated is None:
                raise
            raise translated from e

    def _transform_error(self, error: Exception) -> Optional[ShopDeskException]:
        """Map a persistence error to a ShopDesk error, or None to keep the original."""
        if isinstance(error, StaleDataError):
            return ConcurrentModificationException(
                "The record was modified by another request; reload and retry"
            )
        if isinstance(error, SQLAlchemyError):
            return DatabaseException()
        return None

    def _publish(self, event) -> None:
        if self.event_bus is not None and event is not None:
            self.event_bus.publish(event)

    def _log_operation(
            self,
            operation: str,
            entity_type: str,
            entity_id: Any = None,
            user_id: Optional[int] = None,
            details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Write one audit line for a completed operation.

        The structured fields travel in the record's ``extra`` so log
        handlers can index them.
        """
        audit = {
            "operation": operation,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "user_id": user_id,
            "details": details or {},
            "logged_at": datetime.now(timezone.utc).isoformat(),
        }
        logger.info(f"{operation.upper()} {entity_type} {entity_id} by user {user_id}", extra={"audit": audit})
