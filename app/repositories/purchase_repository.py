# File: app/repositories/purchase_repository.py

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Iterable

from sqlalchemy import select, func
from sqlalchemy.orm import Session, selectinload

from app.db.models.enums import PurchaseOrderStatus
from app.db.models.purchase import PurchaseOrder, PurchaseOrderItem, PurchaseHistory
from app.repositories.base_repository import BaseRepository


class PurchaseOrderRepository(BaseRepository[PurchaseOrder]):
    """
    Repository for PurchaseOrder aggregates.

    Orders are always loaded together with their items so status
    derivation never triggers lazy loads halfway through a mutation.
    """

    model = PurchaseOrder

    def __init__(self, session: Session):
        super().__init__(session, PurchaseOrder)

    def _base_query(self):
        return select(PurchaseOrder).options(selectinload(PurchaseOrder.items))

    def get_with_items(self, order_id: int) -> Optional[PurchaseOrder]:
        stmt = self._base_query().where(PurchaseOrder.id == order_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_for_update(self, order_id: int) -> Optional[PurchaseOrder]:
        """
        Load an order and its items, locking the order row.

        Backends without row locks (SQLite) ignore the lock; the version
        column still rejects a conflicting flush.
        """
        stmt = (
            self._base_query()
            .where(PurchaseOrder.id == order_id)
            .with_for_update(of=PurchaseOrder)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_orders(
        self,
        status: Optional[PurchaseOrderStatus] = None,
        branch_id: Optional[int] = None,
        created_by_user_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        supplier_name: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[PurchaseOrder]:
        """
        List orders, newest first, narrowed by any combination of filters.

        ``supplier_name`` matches case-insensitively anywhere in the free-text
        supplier of at least one item.
        """
        stmt = self._base_query()

        if status is not None:
            stmt = stmt.where(PurchaseOrder.status == status)
        if branch_id is not None:
            stmt = stmt.where(PurchaseOrder.branch_id == branch_id)
        if created_by_user_id is not None:
            stmt = stmt.where(PurchaseOrder.created_by_user_id == created_by_user_id)
        if date_from is not None:
            stmt = stmt.where(PurchaseOrder.created_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(PurchaseOrder.created_at <= date_to)
        if supplier_name:
            matching_orders = (
                select(PurchaseOrderItem.purchase_order_id)
                .where(PurchaseOrderItem.supplier_name.ilike(f"%{supplier_name}%"))
            )
            stmt = stmt.where(PurchaseOrder.id.in_(matching_orders))

        stmt = (
            stmt.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())

    def count_by_status(self, branch_id: Optional[int] = None) -> Dict[PurchaseOrderStatus, int]:
        stmt = select(PurchaseOrder.status, func.count(PurchaseOrder.id)).group_by(
            PurchaseOrder.status
        )
        if branch_id is not None:
            stmt = stmt.where(PurchaseOrder.branch_id == branch_id)
        return {status: count for status, count in self.session.execute(stmt).all()}

    def order_values(
        self,
        branch_id: Optional[int] = None,
        exclude_statuses: Iterable[PurchaseOrderStatus] = (),
    ) -> Dict[int, Decimal]:
        """
        Value of each order computed from its items.

        Value is the sum of unit price times registered quantity over items
        that carry both.
        """
        line_value = PurchaseOrderItem.unit_price * PurchaseOrderItem.quantity_registered
        stmt = (
            select(PurchaseOrderItem.purchase_order_id, func.sum(line_value))
            .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderItem.purchase_order_id)
            .where(
                PurchaseOrderItem.unit_price.is_not(None),
                PurchaseOrderItem.quantity_registered.is_not(None),
            )
            .group_by(PurchaseOrderItem.purchase_order_id)
        )
        if branch_id is not None:
            stmt = stmt.where(PurchaseOrder.branch_id == branch_id)
        excluded = list(exclude_statuses)
        if excluded:
            stmt = stmt.where(PurchaseOrder.status.not_in(excluded))

        return {
            order_id: Decimal(str(value or 0)).quantize(Decimal("0.01"))
            for order_id, value in self.session.execute(stmt).all()
        }


class PurchaseHistoryRepository(BaseRepository[PurchaseHistory]):
    """Append-only access to purchase history records."""

    model = PurchaseHistory

    def __init__(self, session: Session):
        super().__init__(session, PurchaseHistory)

    def list_for_order(self, order_id: int) -> List[PurchaseHistory]:
        stmt = (
            select(PurchaseHistory)
            .where(PurchaseHistory.purchase_order_id == order_id)
            .order_by(PurchaseHistory.id)
        )
        return list(self.session.execute(stmt).scalars().all())
