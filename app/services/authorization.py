# File: app/services/authorization.py
"""
Branch and role authorization for purchase orders.

A single gate answers whether a principal may touch data belonging to a
branch. Services consult it before every read or mutation of an order.
"""

import logging
from typing import Iterable, Optional

from app.core.config import settings
from app.core.exceptions import EntityNotFoundException, ForbiddenException
from app.db.models.enums import UserRole
from app.db.models.purchase import PurchaseOrder
from app.schemas.auth import Principal

logger = logging.getLogger(__name__)


class AuthorizationGate:
    """
    Role and branch-scope predicate.

    Args:
        branch_scoped_roles: Roles restricted to their assigned branch.
            Sales is always scoped; other roles are global unless listed.
    """

    def __init__(self, branch_scoped_roles: Optional[Iterable[str]] = None):
        scoped = set(branch_scoped_roles if branch_scoped_roles is not None
                     else settings.BRANCH_SCOPED_ROLES)
        scoped.add(UserRole.SALES.value)
        self.branch_scoped_roles = frozenset(scoped)

    def is_branch_scoped(self, principal: Principal) -> bool:
        return principal.role.value in self.branch_scoped_roles

    def can_access(self, principal: Principal, branch_id: int) -> bool:
        """Whether the principal may act on data of ``branch_id``."""
        if not self.is_branch_scoped(principal):
            return True
        return principal.branch_id is not None and principal.branch_id == branch_id

    def require_role(
        self, principal: Principal, allowed_roles: Iterable[UserRole], action: str
    ) -> None:
        """
        Raises:
            ForbiddenException: If the principal's role may not perform ``action``
        """
        allowed = set(allowed_roles)
        if principal.role not in allowed:
            logger.warning(
                f"User {principal.user_id} with role {principal.role.value} denied '{action}'"
            )
            raise ForbiddenException(
                "PurchaseOrder",
                reason=f"Role {principal.role.value} may not {action}",
            )

    def ensure_branch_access(self, principal: Principal, branch_id: int) -> None:
        """
        Raises:
            EntityNotFoundException: If a Sales caller names another branch
            ForbiddenException: If another scoped role names another branch
        """
        if self.can_access(principal, branch_id):
            return
        if principal.role == UserRole.SALES:
            raise EntityNotFoundException("Branch", branch_id)
        raise ForbiddenException("Branch", branch_id, reason="Outside assigned branch")

    def ensure_order_access(self, principal: Principal, order: Optional[PurchaseOrder], order_id: int) -> PurchaseOrder:
        """
        Check that an order exists and lies within the principal's scope.

        Sales callers get a not-found error for orders of other branches so
        that the existence of those orders is not revealed.

        Raises:
            EntityNotFoundException: Missing order, or out of scope for Sales
            ForbiddenException: Out of scope for other branch-scoped roles
        """
        if order is None:
            raise EntityNotFoundException("PurchaseOrder", order_id)
        if self.can_access(principal, order.branch_id):
            return order

        logger.warning(
            f"User {principal.user_id} ({principal.role.value}) denied access to "
            f"purchase order {order_id} of branch {order.branch_id}"
        )
        if principal.role == UserRole.SALES:
            raise EntityNotFoundException("PurchaseOrder", order_id)
        raise ForbiddenException("PurchaseOrder", order_id, reason="Outside assigned branch")
