# File: app/db/models/purchase.py
"""
Purchase order models for the ShopDesk system.

This module defines the PurchaseOrder aggregate, its PurchaseOrderItem
lines and the append-only PurchaseHistory audit log. Item fields are
filled progressively as the order moves through acceptance, registration,
finance verification and final approval.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Boolean,
    event,
)
from sqlalchemy.orm import relationship, validates

from app.db.models.base import AbstractBase, TimestampMixin, ModelValidationError, utcnow
from app.db.models.enums import (
    ItemStage,
    PurchaseHistoryAction,
    PurchaseOrderStatus,
)

TERMINAL_STATUSES = frozenset(
    {
        PurchaseOrderStatus.FULLY_APPROVED,
        PurchaseOrderStatus.REJECTED,
        PurchaseOrderStatus.CANCELLED,
    }
)


def _enum_column(enum_class, **kwargs) -> Column:
    return Column(
        Enum(enum_class, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        **kwargs,
    )


class PurchaseOrder(AbstractBase, TimestampMixin):
    """
    Purchase order aggregate root.

    All changes to the order and its items go through the workflow service.
    The ``version`` column is the optimistic-concurrency counter: every
    flush that touches the order row increments it, and a flush against a
    stale version fails.

    Attributes:
        branch_id: Branch the goods are purchased for
        created_by_user_id: Sales user who raised the order
        status: Current lifecycle status
        notes: Free-text notes from the creator
        rejection_reason: Reason given when the order was rejected
        cancellation_reason: Optional reason given on cancellation
    """

    __tablename__ = "purchase_orders"

    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = _enum_column(
        PurchaseOrderStatus,
        nullable=False,
        default=PurchaseOrderStatus.PENDING_ADMIN_ACCEPTANCE,
        index=True,
    )
    notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)

    branch = relationship("Branch")
    created_by = relationship("User", foreign_keys=[created_by_user_id])
    items = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        order_by="PurchaseOrderItem.id",
        cascade="all, delete-orphan",
    )
    history = relationship(
        "PurchaseHistory",
        back_populates="purchase_order",
        order_by="PurchaseHistory.id",
        cascade="save-update, merge",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def accepted_items(self) -> int:
        return sum(1 for item in self.items if item.is_accepted)

    @property
    def registered_items(self) -> int:
        return sum(1 for item in self.items if item.is_accepted and item.is_registered)

    @property
    def finance_processed_items(self) -> int:
        return sum(1 for item in self.items if item.is_accepted and item.is_finance_processed)

    @property
    def approved_items(self) -> int:
        return sum(1 for item in self.items if item.is_approved)

    @property
    def total_value(self) -> Decimal:
        """Sum of unit price times registered quantity over priced lines."""
        return sum((item.line_total for item in self.items), Decimal("0.00"))

    @property
    def total_cost(self) -> Decimal:
        """Sum of buying price times registered quantity over priced lines."""
        return sum((item.line_cost for item in self.items), Decimal("0.00"))

    def get_item(self, item_id: int) -> Optional["PurchaseOrderItem"]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["items"] = [item.to_dict() for item in self.items]
        result["total_value"] = str(self.total_value)
        return result

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrder(id={self.id}, branch_id={self.branch_id}, "
            f"status='{self.status}', items={len(self.items)})>"
        )


class PurchaseOrderItem(AbstractBase, TimestampMixin):
    """
    A single product line of a purchase order.

    Each stage of the workflow fills its own group of fields; an item's
    ``stage`` is the furthest group that is populated. Nothing on the item
    may change once it is approved.
    """

    __tablename__ = "purchase_order_items"

    purchase_order_id = Column(
        Integer, ForeignKey("purchase_orders.id"), nullable=False, index=True
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    # Free text; suppliers are not a relational entity
    supplier_name = Column(String(255), nullable=True, index=True)

    quantity_requested = Column(Integer, nullable=False)

    # Admin acceptance
    quantity_accepted = Column(Integer, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    accepted_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Receipt registration
    quantity_registered = Column(Integer, nullable=True)
    registered_at = Column(DateTime, nullable=True)
    registered_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    registration_edit_count = Column(Integer, nullable=False, default=0)
    last_registration_edit_at = Column(DateTime, nullable=True)

    # Finance verification and pricing
    finance_verified = Column(Boolean, nullable=False, default=False)
    finance_verified_at = Column(DateTime, nullable=True)
    finance_verified_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    buying_price = Column(Numeric(12, 2), nullable=True)
    unit_price = Column(Numeric(12, 2), nullable=True)
    price_set_at = Column(DateTime, nullable=True)
    price_set_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    price_edit_count = Column(Integer, nullable=False, default=0)

    # Final approval
    approved_at = Column(DateTime, nullable=True)
    approved_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    purchase_order = relationship("PurchaseOrder", back_populates="items")
    product = relationship("Product")

    @validates("quantity_requested")
    def validate_quantity_requested(self, key: str, quantity: int) -> int:
        if quantity is None or quantity <= 0:
            raise ModelValidationError(self, key, "Requested quantity must be positive")
        return quantity

    @validates("quantity_accepted")
    def validate_quantity_accepted(self, key: str, quantity: Optional[int]) -> Optional[int]:
        if quantity is None:
            return quantity
        if quantity < 0:
            raise ModelValidationError(self, key, "Accepted quantity cannot be negative")
        if self.quantity_requested is not None and quantity > self.quantity_requested:
            raise ModelValidationError(
                self, key, "Accepted quantity cannot exceed requested quantity"
            )
        return quantity

    @validates("quantity_registered")
    def validate_quantity_registered(self, key: str, quantity: Optional[int]) -> Optional[int]:
        if quantity is not None and quantity < 0:
            raise ModelValidationError(self, key, "Registered quantity cannot be negative")
        return quantity

    @property
    def is_reviewed(self) -> bool:
        return self.quantity_accepted is not None

    @property
    def is_accepted(self) -> bool:
        return (self.quantity_accepted or 0) > 0

    @property
    def is_registered(self) -> bool:
        return (self.quantity_registered or 0) > 0

    @property
    def is_finance_verified(self) -> bool:
        return bool(self.finance_verified)

    @property
    def is_priced(self) -> bool:
        return self.unit_price is not None

    @property
    def is_finance_processed(self) -> bool:
        return self.is_finance_verified and self.is_priced

    @property
    def is_approved(self) -> bool:
        return self.approved_at is not None

    @property
    def can_edit(self) -> bool:
        return not self.is_approved

    @property
    def is_over_received(self) -> bool:
        return (
            self.quantity_registered is not None
            and self.quantity_accepted is not None
            and self.quantity_registered > self.quantity_accepted
        )

    @property
    def stage(self) -> ItemStage:
        """Furthest workflow stage this line has reached."""
        if self.is_approved:
            return ItemStage.APPROVED
        if self.is_reviewed and not self.is_accepted:
            return ItemStage.DECLINED
        if self.is_finance_processed and self.is_registered:
            return ItemStage.FINANCE_PROCESSED
        if self.is_registered:
            return ItemStage.REGISTERED
        if self.is_accepted:
            return ItemStage.ACCEPTED
        return ItemStage.REQUESTED

    @property
    def profit_margin(self) -> Optional[Decimal]:
        """Margin over buying price in percent, when both prices are known."""
        if self.buying_price is None or self.unit_price is None:
            return None
        buying = Decimal(self.buying_price)
        if buying <= 0:
            return None
        return ((Decimal(self.unit_price) - buying) / buying * 100).quantize(Decimal("0.01"))

    @property
    def line_total(self) -> Decimal:
        if self.unit_price is None or not self.quantity_registered:
            return Decimal("0.00")
        return Decimal(self.unit_price) * self.quantity_registered

    @property
    def line_cost(self) -> Decimal:
        if self.buying_price is None or not self.quantity_registered:
            return Decimal("0.00")
        return Decimal(self.buying_price) * self.quantity_registered

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["stage"] = self.stage.value
        margin = self.profit_margin
        result["profit_margin"] = str(margin) if margin is not None else None
        return result

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrderItem(id={self.id}, product_id={self.product_id}, "
            f"requested={self.quantity_requested}, stage='{self.stage.value}')>"
        )


class PurchaseHistory(AbstractBase):
    """
    Append-only audit record of one state-changing workflow call.

    Rows are never updated or deleted once written.
    """

    __tablename__ = "purchase_history"

    purchase_order_id = Column(
        Integer, ForeignKey("purchase_orders.id"), nullable=False, index=True
    )
    purchase_order_item_id = Column(
        Integer, ForeignKey("purchase_order_items.id"), nullable=True
    )
    action = _enum_column(PurchaseHistoryAction, nullable=False)
    performed_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    purchase_order = relationship("PurchaseOrder", back_populates="history")

    def __repr__(self) -> str:
        return (
            f"<PurchaseHistory(id={self.id}, order={self.purchase_order_id}, "
            f"action='{self.action}')>"
        )


@event.listens_for(PurchaseHistory, "before_update")
def _refuse_history_update(mapper, connection, target):
    raise ModelValidationError(target, "action", "Purchase history is append-only")


@event.listens_for(PurchaseHistory, "before_delete")
def _refuse_history_delete(mapper, connection, target):
    raise ModelValidationError(target, "action", "Purchase history is append-only")

