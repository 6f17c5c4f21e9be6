# File: app/services/purchase_query_service.py
"""
Read-side projections over purchase orders.

Listings are narrowed to the caller's branch for branch-scoped roles.
Statistics are computed from item state, the same truth status
derivation uses.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ValidationException
from app.db.models.enums import PurchaseOrderStatus, UserRole
from app.db.models.purchase import PurchaseHistory, PurchaseOrder
from app.repositories.purchase_repository import (
    PurchaseHistoryRepository,
    PurchaseOrderRepository,
)
from app.schemas.auth import Principal
from app.services.authorization import AuthorizationGate
from app.services.base_service import BaseService

logger = logging.getLogger(__name__)

PENDING_STATUSES = frozenset({PurchaseOrderStatus.PENDING_ADMIN_ACCEPTANCE})
COMPLETED_STATUSES = frozenset({PurchaseOrderStatus.FULLY_APPROVED})
CLOSED_STATUSES = frozenset({PurchaseOrderStatus.REJECTED, PurchaseOrderStatus.CANCELLED})


def _as_stored_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert a bound to the naive UTC form timestamps are stored in."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class PurchaseQueryService(BaseService[PurchaseOrder]):
    """Read-only access to purchase orders, their history and statistics."""

    def __init__(
        self,
        session: Session,
        repository: Optional[PurchaseOrderRepository] = None,
        history_repository: Optional[PurchaseHistoryRepository] = None,
        gate: Optional[AuthorizationGate] = None,
    ):
        super().__init__(session, repository=repository or PurchaseOrderRepository(session))
        self.history_repository = history_repository or PurchaseHistoryRepository(session)
        self.gate = gate or AuthorizationGate()

    def get_by_id(self, order_id: int, principal: Principal) -> PurchaseOrder:
        """
        Get an order with its items.

        Raises:
            EntityNotFoundException: If missing, or outside a Sales caller's branch
            ForbiddenException: If outside the branch of another scoped role
        """
        order = self.repository.get_with_items(order_id)
        return self.gate.ensure_order_access(principal, order, order_id)

    def get_history(self, order_id: int, principal: Principal) -> List[PurchaseHistory]:
        self.get_by_id(order_id, principal)
        return self.history_repository.list_for_order(order_id)

    def list_orders(self, principal: Principal, skip: int = 0, limit: Optional[int] = None) -> List[PurchaseOrder]:
        """Newest orders first, narrowed to the caller's branch for scoped roles."""
        return self._list(principal, skip, limit)

    def list_by_status(self, principal: Principal, status: PurchaseOrderStatus,
                       skip: int = 0, limit: Optional[int] = None) -> List[PurchaseOrder]:
        return self._list(principal, skip, limit, status=status)

    def list_by_branch(self, principal: Principal, branch_id: int,
                       skip: int = 0, limit: Optional[int] = None) -> List[PurchaseOrder]:
        self.gate.ensure_branch_access(principal, branch_id)
        return self._list(principal, skip, limit, branch_id=branch_id)

    def list_by_creator(self, principal: Principal, creator_id: int,
                        skip: int = 0, limit: Optional[int] = None) -> List[PurchaseOrder]:
        self.gate.require_role(principal, [UserRole.MANAGER, UserRole.FINANCE],
                               "list purchase orders by creator")
        return self._list(principal, skip, limit, created_by_user_id=creator_id)

    def list_by_date_range(self, principal: Principal, date_from: Optional[datetime], date_to: Optional[datetime],
                           skip: int = 0, limit: Optional[int] = None) -> List[PurchaseOrder]:
        """
        Orders created within ``[date_from, date_to]``.

        A None bound leaves that side open. Naive bounds are read as UTC.
        """
        date_from, date_to = _as_stored_utc(date_from), _as_stored_utc(date_to)
        if date_from is not None and date_to is not None and date_from > date_to:
            raise ValidationException(
                "Invalid date range", {"date_from": ["Start date is after end date"]}
            )
        return self._list(principal, skip, limit, date_from=date_from, date_to=date_to)

    def list_by_supplier(self, principal: Principal, supplier_name: str,
                         skip: int = 0, limit: Optional[int] = None) -> List[PurchaseOrder]:
        supplier_name = (supplier_name or "").strip()
        if not supplier_name:
            raise ValidationException("Supplier is required", {"supplier": ["Must not be empty"]})
        return self._list(principal, skip, limit, supplier_name=supplier_name)

    def get_stats(self, principal: Principal, branch_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Order counts per status and purchase value totals.

        Value is the sum of unit price times registered quantity over the
        items of orders that were neither rejected nor cancelled.
        """
        self.gate.require_role(principal, [UserRole.MANAGER, UserRole.FINANCE],
                               "view purchase statistics")
        if branch_id is None and self.gate.is_branch_scoped(principal):
            branch_id = principal.branch_id
        if branch_id is not None:
            self.gate.ensure_branch_access(principal, branch_id)

        counts = self.repository.count_by_status(branch_id=branch_id)
        by_status = {status.value: counts.get(status, 0) for status in PurchaseOrderStatus}
        total = sum(by_status.values())

        values = self.repository.order_values(branch_id=branch_id, exclude_statuses=CLOSED_STATUSES)
        valued = [value for value in values.values() if value > 0]
        total_value = sum(valued, Decimal("0.00"))
        average = (total_value / len(valued)).quantize(Decimal("0.01")) if valued else Decimal("0.00")

        def _sum(statuses):
            return sum(counts.get(status, 0) for status in statuses)

        pending = _sum(PENDING_STATUSES)
        completed = _sum(COMPLETED_STATUSES)
        closed = _sum(CLOSED_STATUSES)

        logger.debug(f"Computed purchase stats for branch {branch_id}: {total} orders")
        return {
            "branch_id": branch_id,
            "total_orders": total,
            "by_status": by_status,
            "pending_orders": pending,
            "in_progress_orders": total - pending - completed - closed,
            "completed_orders": completed,
            "closed_orders": closed,
            "total_purchase_value": total_value,
            "average_order_value": average,
        }

    def _list(self, principal: Principal, skip: int, limit: Optional[int], **filters) -> List[PurchaseOrder]:
        if self.gate.is_branch_scoped(principal):
            if principal.branch_id is None:
                return []
            # Scoped callers only ever see their own branch
            filters["branch_id"] = principal.branch_id
        return self.repository.list_orders(
            skip=skip, limit=limit or settings.DEFAULT_QUERY_LIMIT, **filters
        )
