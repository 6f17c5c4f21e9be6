# File: app/core/exceptions.py
"""
Error types raised by ShopDesk services.

Each error carries a stable ``code`` and a ``details`` payload; the API
layer turns them into HTTP responses with ``to_dict``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


class ShopDeskException(Exception):
    """Root of every error ShopDesk raises on purpose."""

    def __init__(self, message: str, code: str = "GENERIC_ERROR", details: Optional[Dict[str, Any]] = None):
        """
        Args:
            message: Text safe to show to API clients
            code: Stable identifier clients can branch on
            details: Structured context for the failure
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class DomainException(ShopDeskException):
    CODE_PREFIX = "DOMAIN_"


class EntityNotFoundException(DomainException):
    """A referenced record is missing, inactive or hidden from the caller."""

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type} {entity_id} not found",
            f"{self.CODE_PREFIX}001",
            {"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(ShopDeskException):
    """Input is malformed; ``errors`` maps field paths to messages."""

    def __init__(self, message: str, validation_errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message, "VALIDATION_001", {"validation_errors": validation_errors or {}})

    @property
    def errors(self) -> Dict[str, List[str]]:
        return self.details["validation_errors"]


class ConcurrentModificationException(ShopDeskException):
    """The order changed since the caller read it."""

    def __init__(self, message: str, expected_version: Optional[int] = None,
                 actual_version: Optional[int] = None):
        versions = {"expected_version": expected_version, "actual_version": actual_version}
        super().__init__(
            message,
            "CONCURRENCY_001",
            {key: value for key, value in versions.items() if value is not None},
        )


class SecurityException(ShopDeskException):
    CODE_PREFIX = "SECURITY_"


class ForbiddenException(SecurityException):
    """The caller's role or branch does not permit the action."""

    def __init__(self, resource_type: str, resource_id: Any = None, reason: Optional[str] = None):
        target = resource_type if resource_id is None else f"{resource_type} {resource_id}"
        details: Dict[str, Any] = {"resource_type": resource_type}
        if resource_id is not None:
            details["resource_id"] = resource_id
        if reason:
            details["reason"] = reason
        super().__init__(f"Not allowed to act on {target}", f"{self.CODE_PREFIX}002", details)


class AuthenticationException(SecurityException):
    """Login credentials did not match an active account."""

    def __init__(self, message: str = "Incorrect email or password"):
        super().__init__(message, f"{self.CODE_PREFIX}003")


class BusinessRuleException(ShopDeskException):
    """A workflow or account rule refuses the request."""

    CODE_PREFIX = "BUSINESS_RULE_"

    def __init__(self, message: str, rule: Optional[str] = None, details: Optional[Dict[str, Any]] = None,
                 number: int = 1):
        payload = dict(details or {})
        if rule:
            payload["rule"] = rule
        super().__init__(message, f"{self.CODE_PREFIX}{number:03d}", payload)


class InvalidStatusTransitionException(BusinessRuleException):
    """The action is not legal in the order's current status or item stage."""

    def __init__(self, message: str, current_status: Optional[str] = None,
                 allowed_statuses: Optional[Iterable[str]] = None):
        details: Dict[str, Any] = {}
        if current_status is not None:
            details["current_status"] = current_status
        if allowed_statuses is not None:
            details["allowed_statuses"] = list(allowed_statuses)
        super().__init__(message, rule="status_transition", details=details, number=2)


class DatabaseException(ShopDeskException):
    """Unexpected persistence failure; the message never leaks driver text."""

    def __init__(self, message: str = "A database error occurred"):
        super().__init__(message, "DATABASE_001")
