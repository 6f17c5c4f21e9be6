# File: app/db/models/enums.py
"""
Enumerations shared by the ShopDesk models, services and schemas.

Values are stored as their string form so they read naturally in the
database and in API payloads.
"""

from enum import Enum


class UserRole(str, Enum):
    """Staff roles recognised by the purchase workflow."""

    SALES = "Sales"
    MANAGER = "Manager"
    FINANCE = "Finance"


class PurchaseOrderStatus(str, Enum):
    """
    Lifecycle of a purchase order.

    Rejected, Cancelled and FullyApproved are terminal.
    """

    PENDING_ADMIN_ACCEPTANCE = "PendingAdminAcceptance"
    ACCEPTED_BY_ADMIN = "AcceptedByAdmin"
    PARTIALLY_REGISTERED = "PartiallyRegistered"
    COMPLETELY_REGISTERED = "CompletelyRegistered"
    PARTIALLY_FINANCE_PROCESSED = "PartiallyFinanceProcessed"
    FULLY_FINANCE_PROCESSED = "FullyFinanceProcessed"
    PARTIALLY_APPROVED = "PartiallyApproved"
    FULLY_APPROVED = "FullyApproved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class PurchaseHistoryAction(str, Enum):
    CREATED = "Created"
    ACCEPTED = "Accepted"
    REGISTERED = "Registered"
    EDITED = "Edited"
    FINANCE_VERIFIED = "FinanceVerified"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class ItemStage(str, Enum):
    """Furthest workflow stage a single purchase order item has reached."""

    REQUESTED = "Requested"
    DECLINED = "Declined"
    ACCEPTED = "Accepted"
    REGISTERED = "Registered"
    FINANCE_PROCESSED = "FinanceProcessed"
    APPROVED = "Approved"


class StockMovementType(str, Enum):
    PURCHASE = "Purchase"
    SALE = "Sale"
    ADJUSTMENT = "Adjustment"
    RETURN = "Return"
