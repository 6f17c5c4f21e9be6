# File: app/services/purchase_status.py
"""
Status rules for purchase orders.

``derive_status`` computes an order's status from its items alone. It is
re-run from scratch after every mutation, so the stored status can never
drift from the items. Rejected and Cancelled are the only statuses set
directly, and together with FullyApproved they are terminal.

The ``*_STATUSES`` tables list the statuses in which each workflow action
is legal.
"""

from typing import Iterable, Sequence

from app.db.models.enums import PurchaseOrderStatus as Status
from app.db.models.purchase import PurchaseOrderItem, TERMINAL_STATUSES

CREATE_EDIT_STATUSES = frozenset({Status.PENDING_ADMIN_ACCEPTANCE})

ACCEPT_STATUSES = frozenset({Status.PENDING_ADMIN_ACCEPTANCE})

REGISTER_STATUSES = frozenset(
    {
        Status.ACCEPTED_BY_ADMIN,
        Status.PARTIALLY_REGISTERED,
        Status.COMPLETELY_REGISTERED,
        Status.PARTIALLY_FINANCE_PROCESSED,
        Status.PARTIALLY_APPROVED,
    }
)

FINANCE_STATUSES = frozenset(
    {
        Status.PARTIALLY_REGISTERED,
        Status.COMPLETELY_REGISTERED,
        Status.PARTIALLY_FINANCE_PROCESSED,
        Status.FULLY_FINANCE_PROCESSED,
        Status.PARTIALLY_APPROVED,
    }
)

APPROVAL_STATUSES = frozenset(
    {
        Status.PARTIALLY_FINANCE_PROCESSED,
        Status.FULLY_FINANCE_PROCESSED,
        Status.PARTIALLY_APPROVED,
    }
)

# Statuses past admin acceptance that are still open for admin edits
POST_ACCEPTANCE_STATUSES = frozenset(
    {
        Status.ACCEPTED_BY_ADMIN,
        Status.PARTIALLY_REGISTERED,
        Status.COMPLETELY_REGISTERED,
        Status.PARTIALLY_FINANCE_PROCESSED,
        Status.FULLY_FINANCE_PROCESSED,
        Status.PARTIALLY_APPROVED,
    }
)

# (predicate, partial status, complete status), highest milestone first
_MILESTONES = (
    (lambda item: item.is_approved, Status.PARTIALLY_APPROVED, Status.FULLY_APPROVED),
    (
        lambda item: item.is_finance_processed,
        Status.PARTIALLY_FINANCE_PROCESSED,
        Status.FULLY_FINANCE_PROCESSED,
    ),
    (lambda item: item.is_registered, Status.PARTIALLY_REGISTERED, Status.COMPLETELY_REGISTERED),
)


def is_terminal(status: Status) -> bool:
    return status in TERMINAL_STATUSES


def sorted_values(statuses: Iterable[Status]) -> list:
    return sorted(status.value for status in statuses)


def derive_status(items: Sequence[PurchaseOrderItem], current: Status) -> Status:
    """
    Compute the order status from the state of its items.

    Args:
        items: All items of the order
        current: The status currently stored on the order

    Returns:
        The status the order should have
    """
    if is_terminal(current):
        return current

    if not any(item.is_reviewed for item in items):
        return Status.PENDING_ADMIN_ACCEPTANCE

    accepted = [item for item in items if item.is_accepted]
    if not accepted:
        # Declined lines only; unreviewed lines may still be accepted
        return Status.PENDING_ADMIN_ACCEPTANCE

    total = len(accepted)
    for predicate, partial, complete in _MILESTONES:
        count = sum(1 for item in accepted if predicate(item))
        if count == total:
            return complete
        if count > 0:
            return partial

    return Status.ACCEPTED_BY_ADMIN
