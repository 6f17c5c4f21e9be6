# File: app/db/models/__init__.py
"""
Database models for ShopDesk.

Importing this package registers every mapped class on ``Base.metadata``.
"""

from app.db.models.base import Base, AbstractBase, TimestampMixin, ModelValidationError
from app.db.models.enums import (
    UserRole,
    PurchaseOrderStatus,
    PurchaseHistoryAction,
    ItemStage,
    StockMovementType,
)
from app.db.models.branch import Branch
from app.db.models.product import Product
from app.db.models.user import User
from app.db.models.stock import Stock, StockMovement
from app.db.models.purchase import (
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseHistory,
    TERMINAL_STATUSES,
)

__all__ = [
    "Base",
    "AbstractBase",
    "TimestampMixin",
    "ModelValidationError",
    "UserRole",
    "PurchaseOrderStatus",
    "PurchaseHistoryAction",
    "ItemStage",
    "StockMovementType",
    "Branch",
    "Product",
    "User",
    "Stock",
    "StockMovement",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PurchaseHistory",
    "TERMINAL_STATUSES",
]
