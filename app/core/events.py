# File: app/core/events.py
"""
Domain events for ShopDesk.

Services publish events after a successful commit; subscribers run
synchronously and their failures are logged, never propagated back into
the workflow call that produced the event.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Type, Union

from fastapi import FastAPI

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for all domain events."""

    def __post_init__(self):
        self.event_id = str(uuid.uuid4())
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Flat payload including the generated id, type name and ISO timestamp."""
        data = asdict(self)
        data["event_id"] = self.event_id
        data["event_type"] = type(self).__name__
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class PurchaseOrderCreated(DomainEvent):
    purchase_order_id: int
    branch_id: int
    created_by_user_id: int
    item_count: int


@dataclass
class PurchaseOrderStatusChanged(DomainEvent):
    purchase_order_id: int
    action: str
    previous_status: str
    new_status: str
    performed_by_user_id: int
    reason: Optional[str] = None


def _event_key(event_type: Union[str, Type[DomainEvent]]) -> str:
    return event_type.__name__ if isinstance(event_type, type) else str(event_type)


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__name__", repr(handler))


class EventBus:
    """
    In-process publish/subscribe bus.

    Handlers are registered per event class name and called in
    registration order.
    """

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = defaultdict(list)

    def publish(self, event: DomainEvent) -> None:
        key = type(event).__name__
        handlers = list(self.subscribers.get(key, []))
        logger.debug(f"{key} {event.event_id} -> {len(handlers)} handler(s)")
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Handler {_handler_name(handler)} failed on {key} {event.event_id}")

    def subscribe(self, event_type: Union[str, Type[DomainEvent]], handler: Callable) -> None:
        self.subscribers[_event_key(event_type)].append(handler)

    def unsubscribe(self, event_type: Union[str, Type[DomainEvent]], handler: Callable) -> bool:
        """Remove ``handler``; returns False when it was not subscribed."""
        handlers = self.subscribers.get(_event_key(event_type), [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        return True


global_event_bus = EventBus()


def log_status_change(event: PurchaseOrderStatusChanged) -> None:
    """Audit-log subscriber for purchase order status changes."""
    suffix = f" ({event.reason})" if event.reason else ""
    logger.info(
        f"Purchase order {event.purchase_order_id}: {event.action} by user "
        f"{event.performed_by_user_id}, {event.previous_status} -> {event.new_status}{suffix}"
    )


def setup_event_handlers(app: FastAPI) -> None:
    """Attach the default subscribers for the lifetime of ``app``."""

    @app.on_event("startup")
    async def subscribe_audit_log():
        global_event_bus.subscribe(PurchaseOrderStatusChanged, log_status_change)
        logger.info("ShopDesk audit log subscribed to status changes")

    @app.on_event("shutdown")
    async def unsubscribe_audit_log():
        global_event_bus.unsubscribe(PurchaseOrderStatusChanged, log_status_change)
        logger.info("ShopDesk audit log unsubscribed")
