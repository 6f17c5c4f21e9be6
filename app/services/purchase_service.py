# File: app/services/purchase_service.py
"""
Purchase order workflow service for ShopDesk.

Every public method is one workflow action on a single purchase order.
An action checks the caller's role, loads and locks the order, checks
branch scope and the order's status, validates all submitted items,
applies the changes, recomputes the status from the items, and appends
exactly one history record. All of it commits or rolls back together.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.events import PurchaseOrderCreated, PurchaseOrderStatusChanged
from app.core.exceptions import (
    ConcurrentModificationException,
    EntityNotFoundException,
    ForbiddenException,
    InvalidStatusTransitionException,
    ValidationException,
)
from app.core.validation import (
    ValidationResult,
    to_decimal,
    validate_input,
    validate_order_items,
)
from app.db.models.base import utcnow
from app.db.models.enums import (
    PurchaseHistoryAction,
    PurchaseOrderStatus,
    UserRole,
)
from app.db.models.purchase import PurchaseHistory, PurchaseOrder, PurchaseOrderItem
from app.repositories.branch_repository import BranchRepository
from app.repositories.product_repository import ProductRepository
from app.repositories.purchase_repository import PurchaseOrderRepository
from app.schemas.auth import Principal
from app.services.authorization import AuthorizationGate
from app.services.base_service import BaseService
from app.services.purchase_status import (
    ACCEPT_STATUSES,
    APPROVAL_STATUSES,
    CREATE_EDIT_STATUSES,
    FINANCE_STATUSES,
    POST_ACCEPTANCE_STATUSES,
    REGISTER_STATUSES,
    derive_status,
    is_terminal,
    sorted_values,
)
from app.services.stock_service import StockService

logger = logging.getLogger(__name__)

ItemPayload = Dict[str, Any]


class PurchaseService(BaseService[PurchaseOrder]):
    """
    Workflow engine for purchase orders.

    Stages: creation, admin acceptance, receipt registration, finance
    verification, final approval. Rejection and cancellation end the
    workflow at any open stage.
    """

    def __init__(
        self,
        session: Session,
        repository: Optional[PurchaseOrderRepository] = None,
        gate: Optional[AuthorizationGate] = None,
        stock_service: Optional[StockService] = None,
        branch_repository: Optional[BranchRepository] = None,
        product_repository: Optional[ProductRepository] = None,
        event_bus=None,
    ):
        """
        Initialize the workflow service.

        Args:
            session: Database session for persistence operations
            repository: Optional PurchaseOrderRepository instance
            gate: Authorization gate consulted before every action
            stock_service: Collaborator that books approved items into stock
            branch_repository: Branch lookup for existence checks
            product_repository: Product lookup for existence checks
            event_bus: Optional event bus for publishing domain events
        """
        super().__init__(
            session,
            repository=repository or PurchaseOrderRepository(session),
            event_bus=event_bus,
        )
        self.gate = gate or AuthorizationGate()
        self.stock_service = stock_service or StockService(session)
        self.branch_repository = branch_repository or BranchRepository(session)
        self.product_repository = product_repository or ProductRepository(session)

    # ------------------------------------------------------------------
    # Creation and pending-stage edits
    # ------------------------------------------------------------------

    @validate_input(validate_order_items)
    def create_order(self, data: Dict[str, Any], principal: Principal) -> PurchaseOrder:
        """
        Create a purchase order awaiting admin acceptance.

        Args:
            data: ``branch_id`` (defaults to the caller's branch), optional
                ``notes`` and ``items`` of ``product_id``,
                ``quantity_requested`` and optional ``supplier_name``
            principal: The calling Sales user

        Returns:
            The created order

        Raises:
            ForbiddenException: If the caller is not Sales
            EntityNotFoundException: If the branch or a product is missing or inactive
            ValidationException: If the item list is structurally invalid
        """
        self.gate.require_role(principal, [UserRole.SALES], "create purchase orders")

        branch_id = data.get("branch_id") or principal.branch_id
        if branch_id is None:
            raise ValidationException(
                "Branch is required", {"branch_id": ["No branch given and caller has no branch"]}
            )
        self.gate.ensure_branch_access(principal, branch_id)
        self._require_branch(branch_id)
        self._require_products(item["product_id"] for item in data["items"])

        with self.transaction():
            order = PurchaseOrder(
                branch_id=branch_id,
                created_by_user_id=principal.user_id,
                status=PurchaseOrderStatus.PENDING_ADMIN_ACCEPTANCE,
                notes=data.get("notes"),
            )
            order.items = [self._new_item(item) for item in data["items"]]
            self.repository.add(order)
            self.session.flush()

            self._append_history(
                order,
                principal,
                PurchaseHistoryAction.CREATED,
                f"Created with {len(order.items)} item(s): "
                + ", ".join(f"product {i.product_id} x{i.quantity_requested}" for i in order.items),
            )

        self._log_operation("create", "PurchaseOrder", order.id, principal.user_id,
                            {"branch_id": branch_id, "items": len(order.items)})
        self._publish(
            PurchaseOrderCreated(
                purchase_order_id=order.id,
                branch_id=order.branch_id,
                created_by_user_id=principal.user_id,
                item_count=len(order.items),
            )
        )
        return order

    def edit_order_items(
        self,
        order_id: int,
        principal: Principal,
        data: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        """
        Replace the item list (and optionally the notes) of a pending order.

        Items are matched by product: matching lines are updated in place,
        lines for products no longer listed are removed and new products
        are added.
        """
        validate_order_items(data).raise_if_invalid()

        with self.transaction():
            order = self._load_for_action(
                order_id, principal, [UserRole.SALES, UserRole.MANAGER],
                "edit purchase order items", CREATE_EDIT_STATUSES, expected_version,
            )
            self._require_products(item["product_id"] for item in data["items"])
            previous_status = order.status

            existing = {item.product_id: item for item in order.items}
            kept = []
            for payload in data["items"]:
                item = existing.pop(payload["product_id"], None)
                if item is None:
                    item = self._new_item(payload)
                else:
                    item.quantity_requested = payload["quantity_requested"]
                    if payload.get("supplier_name") is not None:
                        item.supplier_name = payload["supplier_name"]
                kept.append(item)
            removed = list(existing.values())
            order.items = kept

            if "notes" in data:
                order.notes = data["notes"]

            details = (
                f"Items replaced: {len(kept)} line(s)"
                + (f", removed products {sorted(i.product_id for i in removed)}" if removed else "")
            )
            self._finish(order, principal, PurchaseHistoryAction.EDITED, details)

        return self._after_commit(order, principal, PurchaseHistoryAction.EDITED, previous_status)

    # ------------------------------------------------------------------
    # Admin acceptance
    # ------------------------------------------------------------------

    def accept_quantities(
        self,
        order_id: int,
        principal: Principal,
        items: List[ItemPayload],
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        """
        Record the quantities the admin accepts for each submitted item.

        The whole call fails if any accepted quantity is negative or above
        the requested quantity. Accepting zero declines a line; once every
        line is reviewed and all of them are declined the order is rejected.
        Lines left out of the call stay unreviewed and can be accepted later.

        Args:
            items: ``item_id``, ``quantity_accepted`` and optional ``supplier_name``
        """
        with self.transaction():
            order = self._load_for_action(
                order_id, principal, [UserRole.MANAGER],
                "accept purchase orders", ACCEPT_STATUSES, expected_version,
            )
            previous_status = order.status
            targets = self._resolve_items(order, items)

            result = ValidationResult()
            for index, (item, payload) in enumerate(targets):
                self._check_accepted_quantity(result, index, item, payload.get("quantity_accepted"))
            result.raise_if_invalid("Accepted quantities are invalid")

            now = utcnow()
            for item, payload in targets:
                item.quantity_accepted = payload["quantity_accepted"]
                item.accepted_at = now
                item.accepted_by_user_id = principal.user_id
                if payload.get("supplier_name") is not None:
                    item.supplier_name = payload["supplier_name"]

            details = "Accepted " + ", ".join(
                f"item {item.id}: {item.quantity_accepted}/{item.quantity_requested}"
                for item, _ in targets
            )
            override = None
            # Unsubmitted lines keep the order open for a later acceptance call
            all_reviewed = all(item.is_reviewed for item in order.items)
            if all_reviewed and not any(item.is_accepted for item in order.items):
                override = PurchaseOrderStatus.REJECTED
                order.rejection_reason = "All items declined at acceptance"
                details += ". All items declined; order rejected"

            self._finish(order, principal, PurchaseHistoryAction.ACCEPTED, details,
                         targets=targets, override=override)

        return self._after_commit(order, principal, PurchaseHistoryAction.ACCEPTED, previous_status)

    def edit_accepted_quantities(
        self,
        order_id: int,
        principal: Principal,
        items: List[ItemPayload],
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        """Admin correction of accepted quantities after acceptance."""
        with self.transaction():
            order = self._load_for_action(
                order_id, principal, [UserRole.MANAGER],
                "edit accepted quantities", POST_ACCEPTANCE_STATUSES, expected_version,
            )
            previous_status = order.status
            targets = self._resolve_items(order, items)
            self._ensure_editable(order, targets)

            result = ValidationResult()
            for index, (item, payload) in enumerate(targets):
                self._check_accepted_quantity(result, index, item, payload.get("quantity_accepted"))
            result.raise_if_invalid("Accepted quantities are invalid")

            proposed = {item.id: payload["quantity_accepted"] for item, payload in targets}
            if not any((proposed.get(item.id, item.quantity_accepted) or 0) > 0 for item in order.items):
                raise ValidationException(
                    "At least one item must remain accepted",
                    {"items": ["Declining every item is a rejection; use reject instead"]},
                )

            now = utcnow()
            changes = []
            for item, payload in targets:
                changes.append(f"item {item.id}: {item.quantity_accepted} -> {payload['quantity_accepted']}")
                item.quantity_accepted = payload["quantity_accepted"]
                item.accepted_at = now
                item.accepted_by_user_id = principal.user_id

            self._finish(order, principal, PurchaseHistoryAction.EDITED,
                         "Accepted quantities edited: " + ", ".join(changes), targets=targets)

        return self._after_commit(order, principal, PurchaseHistoryAction.EDITED, previous_status)

    # ------------------------------------------------------------------
    # Receipt registration
    # ------------------------------------------------------------------

    def register_received(
        self,
        order_id: int,
        principal: Principal,
        items: List[ItemPayload],
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        """
        Record the quantities physically received for accepted items.

        May be repeated for an item until finance verifies it. Quantities
        above the accepted quantity are recorded as given and flagged in
        the log and history.

        Args:
            items: ``item_id`` and ``quantity_registered``
        """
        with self.transaction():
            order = self._load_for_action(
                order_id, principal, [UserRole.SALES],
                "register received goods", REGISTER_STATUSES, expected_version,
            )
            previous_status = order.status
            targets = self._resolve_items(order, items)
            self._ensure_editable(order, targets)

            for item, _ in targets:
                if not item.is_accepted:
                    raise self._item_transition_error(order, item, "was not accepted")
                if item.is_finance_verified:
                    raise self._item_transition_error(order, item, "is already verified by finance")

            self._check_registered_quantities(targets)
            details = self._apply_registration(order, principal, targets, "Registered")
            self._finish(order, principal, PurchaseHistoryAction.REGISTERED, details, targets=targets)

        return self._after_commit(order, principal, PurchaseHistoryAction.REGISTERED, previous_status)

    def edit_registered_quantities(
        self,
        order_id: int,
        principal: Principal,
        items: List[ItemPayload],
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        """Admin correction of registered quantities on unapproved items."""
        with self.transaction():
            order = self._load_for_action(
                order_id, principal, [UserRole.MANAGER],
                "edit registered quantities", POST_ACCEPTANCE_STATUSES, expected_version,
            )
            previous_status = order.status
            targets = self._resolve_items(order, items)
            self._ensure_editable(order, targets)

            for item, _ in targets:
                if not item.is_accepted:
                    raise self._item_transition_error(order, item, "was not accepted")

            self._check_registered_quantities(targets)
            details = self._apply_registration(order, principal, targets, "Registered quantities edited")
            self._finish(order, principal, PurchaseHistoryAction.EDITED, details, targets=targets)

        return self._after_commit(order, principal, PurchaseHistoryAction.EDITED, previous_status)

    # ------------------------------------------------------------------
    # Finance verification and pricing
    # ------------------------------------------------------------------

    def verify_finance(
        self,
        order_id: int,
        principal: Principal,
        items: List[ItemPayload],
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        """
        Confirm prices and set the finance verification flag on registered items.

        Args:
            items: ``item_id``, ``verified`` (default True), optional
                ``buying_price``, ``unit_price`` and ``supplier_name``. A
                missing unit price is derived from the buying price with the
                configured markup.
        """
        with self.transaction():
            order = self._load_for_action(
                order_id, principal, [UserRole.FINANCE, UserRole.MANAGER],
                "verify purchase orders", FINANCE_STATUSES, expected_version,
            )
            previous_status = order.status
            targets = self._resolve_items(order, items)
            self._ensure_editable(order, targets)

            for item, _ in targets:
                if not item.is_registered:
                    raise self._item_transition_error(order, item, "has not been registered")

            prices = self._resolve_prices(targets, require_unit_when_verified=True)

            now = utcnow()
            notes = []
            for item, payload in targets:
                buying, unit, changed = prices[item.id]
                if changed:
                    self._apply_prices(item, principal, buying, unit, now)
                verified = payload.get("verified", True)
                item.finance_verified = bool(verified)
                if verified:
                    item.finance_verified_at = now
                    item.finance_verified_by_user_id = principal.user_id
                else:
                    item.finance_verified_at = None
                    item.finance_verified_by_user_id = None
                if payload.get("supplier_name") is not None:
                    item.supplier_name = payload["supplier_name"]
                notes.append(
                    f"item {item.id}: {'verified' if verified else 'unverified'}, "
                    f"buying {item.buying_price}, unit {item.unit_price}"
                )

            self._finish(order, principal, PurchaseHistoryAction.FINANCE_VERIFIED,
                         "Finance " + "; ".join(notes), targets=targets)

        return self._after_commit(order, principal, PurchaseHistoryAction.FINANCE_VERIFIED, previous_status)

    def edit_prices(
        self,
        order_id: int,
        principal: Principal,
        items: List[ItemPayload],
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        """Change buying/unit prices of unapproved items without touching verification."""
        with self.transaction():
            order = self._load_for_action(
                order_id, principal, [UserRole.MANAGER, UserRole.FINANCE],
                "edit prices", POST_ACCEPTANCE_STATUSES, expected_version,
            )
            previous_status = order.status
            targets = self._resolve_items(order, items)
            self._ensure_editable(order, targets)

            for item, _ in targets:
                if not item.is_accepted:
                    raise self._item_transition_error(order, item, "was not accepted")

            prices = self._resolve_prices(targets, require_unit_when_verified=False)

            now = utcnow()
            notes = []
            for item, payload in targets:
                buying, unit, changed = prices[item.id]
                if changed:
                    self._apply_prices(item, principal, buying, unit, now)
                if payload.get("supplier_name") is not None:
                    item.supplier_name = payload["supplier_name"]
                notes.append(f"item {item.id}: buying {item.buying_price}, unit {item.unit_price}")

            self._finish(order, principal, PurchaseHistoryAction.EDITED,
                         "Prices edited: " + "; ".join(notes), targets=targets)

        return self._after_commit(order, principal, PurchaseHistoryAction.EDITED, previous_status)

    # ------------------------------------------------------------------
    # Final approval
    # ------------------------------------------------------------------

    def final_approve(
        self,
        order_id: int,
        principal: Principal,
        item_ids: Optional[List[int]] = None,
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        """
        Approve finance-processed items and book them into branch stock.

        Args:
            item_ids: Items to approve; empty or None approves every
                eligible item
        """
        with self.transaction():
            order = self._load_for_action(
                order_id, principal, [UserRole.MANAGER],
                "approve purchase orders", APPROVAL_STATUSES, expected_version,
            )
            previous_status = order.status

            if item_ids:
                targets = self._resolve_items(order, [{"item_id": item_id} for item_id in item_ids])
                self._ensure_editable(order, targets)
                for item, _ in targets:
                    if not (item.is_accepted and item.is_finance_processed):
                        raise self._item_transition_error(order, item, "is not finance processed")
            else:
                targets = [
                    (item, {})
                    for item in order.items
                    if item.is_accepted and item.is_finance_processed and not item.is_approved
                ]
                if not targets:
                    raise InvalidStatusTransitionException(
                        f"Purchase order {order.id} has no items ready for approval",
                        current_status=order.status.value,
                    )

            now = utcnow()
            for item, _ in targets:
                item.approved_at = now
                item.approved_by_user_id = principal.user_id
                self.stock_service.receive_purchase_item(order, item, principal.user_id)

            details = "Approved " + ", ".join(
                f"item {item.id} ({item.quantity_registered} @ {item.unit_price})" for item, _ in targets
            )
            self._finish(order, principal, PurchaseHistoryAction.APPROVED, details, targets=targets)

        return self._after_commit(order, principal, PurchaseHistoryAction.APPROVED, previous_status)

    # ------------------------------------------------------------------
    # Terminal overrides
    # ------------------------------------------------------------------

    def reject(
        self,
        order_id: int,
        principal: Principal,
        reason: str,
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        """
        Reject an open order. A non-empty reason is required.
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException("Rejection reason is required", {"reason": ["Must not be empty"]})

        with self.transaction():
            order = self._load_for_action(
                order_id, principal, [UserRole.MANAGER],
                "reject purchase orders", None, expected_version,
            )
            previous_status = order.status
            order.rejection_reason = reason
            self._finish(order, principal, PurchaseHistoryAction.REJECTED,
                         f"Rejected: {reason}", override=PurchaseOrderStatus.REJECTED)

        return self._after_commit(order, principal, PurchaseHistoryAction.REJECTED, previous_status, reason)

    def cancel(
        self,
        order_id: int,
        principal: Principal,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> bool:
        """
        Cancel an order.

        Sales may cancel only orders they created, and only while pending
        admin acceptance. Managers may cancel any open order on which no
        item has been approved.

        Returns:
            True once the order is cancelled
        """
        with self.transaction():
            order = self._load_for_action(
                order_id, principal, [UserRole.SALES, UserRole.MANAGER],
                "cancel purchase orders", None, expected_version,
            )
            previous_status = order.status

            if principal.role == UserRole.SALES:
                if order.created_by_user_id != principal.user_id:
                    raise ForbiddenException(
                        "PurchaseOrder", order.id, reason="Sales may cancel only their own orders"
                    )
                if order.status != PurchaseOrderStatus.PENDING_ADMIN_ACCEPTANCE:
                    raise InvalidStatusTransitionException(
                        f"Sales can cancel purchase order {order.id} only while it awaits admin acceptance",
                        current_status=order.status.value,
                        allowed_statuses=[PurchaseOrderStatus.PENDING_ADMIN_ACCEPTANCE.value],
                    )
            elif order.approved_items:
                raise InvalidStatusTransitionException(
                    f"Purchase order {order.id} has approved items and cannot be cancelled",
                    current_status=order.status.value,
                )

            reason = (reason or "").strip() or None
            order.cancellation_reason = reason
            self._finish(order, principal, PurchaseHistoryAction.CANCELLED,
                         f"Cancelled: {reason}" if reason else "Cancelled",
                         override=PurchaseOrderStatus.CANCELLED)

        self._after_commit(order, principal, PurchaseHistoryAction.CANCELLED, previous_status, reason)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_for_action(
        self,
        order_id: int,
        principal: Principal,
        roles: Iterable[UserRole],
        action: str,
        allowed_statuses: Optional[Iterable[PurchaseOrderStatus]],
        expected_version: Optional[int],
    ) -> PurchaseOrder:
        """
        Role check, locked load, scope check, version check and status check.

        ``allowed_statuses`` of None means any non-terminal status.
        """
        self.gate.require_role(principal, roles, action)
        order = self.repository.get_for_update(order_id)
        order = self.gate.ensure_order_access(principal, order, order_id)

        if expected_version is not None and expected_version != order.version:
            raise ConcurrentModificationException(
                f"Purchase order {order_id} has changed; reload and retry",
                expected_version=expected_version,
                actual_version=order.version,
            )

        if is_terminal(order.status):
            raise InvalidStatusTransitionException(
                f"Purchase order {order_id} is {order.status.value} and can no longer change",
                current_status=order.status.value,
                allowed_statuses=[],
            )
        if allowed_statuses is not None and order.status not in allowed_statuses:
            raise InvalidStatusTransitionException(
                f"Cannot {action} while purchase order {order_id} is {order.status.value}",
                current_status=order.status.value,
                allowed_statuses=sorted_values(allowed_statuses),
            )
        return order

    def _resolve_items(
        self, order: PurchaseOrder, items: List[ItemPayload]
    ) -> List[Tuple[PurchaseOrderItem, ItemPayload]]:
        """Pair each payload with its order item; every id must belong to the order."""
        if not items:
            raise ValidationException("At least one item is required", {"items": ["Empty item list"]})

        seen = set()
        result = ValidationResult()
        for index, payload in enumerate(items):
            item_id = payload.get("item_id")
            if item_id is None:
                result.add_error(f"items[{index}].item_id", "Item is required")
            elif item_id in seen:
                result.add_error(f"items[{index}].item_id", f"Item {item_id} appears more than once")
            seen.add(item_id)
        result.raise_if_invalid("Item list is invalid")

        pairs = []
        for payload in items:
            item = order.get_item(payload["item_id"])
            if item is None:
                raise EntityNotFoundException("PurchaseOrderItem", payload["item_id"])
            pairs.append((item, payload))
        return pairs

    def _ensure_editable(self, order: PurchaseOrder, targets) -> None:
        for item, _ in targets:
            if not item.can_edit:
                raise self._item_transition_error(order, item, "is approved and can no longer change")

    @staticmethod
    def _item_transition_error(order: PurchaseOrder, item: PurchaseOrderItem, problem: str):
        return InvalidStatusTransitionException(
            f"Item {item.id} of purchase order {order.id} {problem}",
            current_status=order.status.value,
        )

    @staticmethod
    def _check_accepted_quantity(result: ValidationResult, index: int, item: PurchaseOrderItem, quantity) -> None:
        field = f"items[{index}].quantity_accepted"
        if quantity is None:
            result.add_error(field, "Accepted quantity is required")
        elif quantity < 0:
            result.add_error(field, "Accepted quantity cannot be negative")
        elif quantity > item.quantity_requested:
            result.add_error(
                field,
                f"Accepted quantity {quantity} exceeds requested quantity {item.quantity_requested}",
            )

    @staticmethod
    def _check_registered_quantities(targets) -> None:
        result = ValidationResult()
        for index, (_, payload) in enumerate(targets):
            quantity = payload.get("quantity_registered")
            if quantity is None:
                result.add_error(f"items[{index}].quantity_registered", "Registered quantity is required")
            elif quantity < 0:
                result.add_error(f"items[{index}].quantity_registered", "Registered quantity cannot be negative")
        result.raise_if_invalid("Registered quantities are invalid")

    def _apply_registration(self, order: PurchaseOrder, principal: Principal, targets, label: str) -> str:
        now = utcnow()
        notes = []
        for item, payload in targets:
            quantity = payload["quantity_registered"]
            item.quantity_registered = quantity
            if item.registered_at is None:
                item.registered_at = now
            item.registered_by_user_id = principal.user_id
            item.last_registration_edit_at = now
            item.registration_edit_count = (item.registration_edit_count or 0) + 1

            note = f"item {item.id}: {quantity}"
            if item.is_over_received:
                logger.warning(
                    f"Purchase order {order.id} item {item.id}: registered {quantity} "
                    f"exceeds accepted {item.quantity_accepted}"
                )
                note += f" (over accepted {item.quantity_accepted})"
            elif quantity < item.quantity_accepted:
                note += f" (short of accepted {item.quantity_accepted})"
            notes.append(note)
        return f"{label} " + ", ".join(notes)

    def _resolve_prices(
        self, targets, require_unit_when_verified: bool
    ) -> Dict[int, Tuple[Optional[Decimal], Optional[Decimal], bool]]:
        """
        Work out the prices each item will carry and validate them all.

        Returns:
            Map of item id to (buying, unit, changed)
        """
        markup = Decimal(str(settings.DEFAULT_MARKUP_PERCENTAGE))
        result = ValidationResult()
        resolved = {}

        for index, (item, payload) in enumerate(targets):
            given_buying = to_decimal(payload.get("buying_price"))
            given_unit = to_decimal(payload.get("unit_price"))
            buying = given_buying if given_buying is not None else item.buying_price
            unit = given_unit if given_unit is not None else item.unit_price

            if given_buying is not None and given_unit is None and item.unit_price is None:
                unit = (given_buying * (Decimal("100") + markup) / Decimal("100")).quantize(Decimal("0.01"))

            prefix = f"items[{index}]"
            if buying is not None and buying <= 0:
                result.add_error(f"{prefix}.buying_price", "Buying price must be positive")
            if unit is not None and unit <= 0:
                result.add_error(f"{prefix}.unit_price", "Unit price must be positive")
            if (
                settings.ENFORCE_UNIT_ABOVE_BUYING
                and buying is not None
                and unit is not None
                and buying > 0
                and unit <= buying
            ):
                result.add_error(f"{prefix}.unit_price", "Unit price must exceed buying price")
            if require_unit_when_verified and payload.get("verified", True) and unit is None:
                result.add_error(f"{prefix}.unit_price", "A unit price is required to verify an item")

            changed = given_buying is not None or given_unit is not None
            resolved[item.id] = (buying, unit, changed)

        result.raise_if_invalid("Prices are invalid")
        return resolved

    @staticmethod
    def _apply_prices(item: PurchaseOrderItem, principal: Principal, buying, unit, now) -> None:
        item.buying_price = buying
        item.unit_price = unit
        item.price_set_at = now
        item.price_set_by_user_id = principal.user_id
        item.price_edit_count = (item.price_edit_count or 0) + 1

    def _new_item(self, payload: ItemPayload) -> PurchaseOrderItem:
        return PurchaseOrderItem(
            product_id=payload["product_id"],
            quantity_requested=payload["quantity_requested"],
            supplier_name=payload.get("supplier_name"),
            registration_edit_count=0,
            price_edit_count=0,
            finance_verified=False,
        )

    def _require_branch(self, branch_id: int) -> None:
        if self.branch_repository.get_active_by_id(branch_id) is None:
            raise EntityNotFoundException("Branch", branch_id)

    def _require_products(self, product_ids: Iterable[int]) -> None:
        ids = list(product_ids)
        found = self.product_repository.get_active_by_ids(ids)
        for product_id in ids:
            if product_id not in found:
                raise EntityNotFoundException("Product", product_id)

    def _finish(
        self,
        order: PurchaseOrder,
        principal: Principal,
        action: PurchaseHistoryAction,
        details: str,
        targets=None,
        override: Optional[PurchaseOrderStatus] = None,
    ) -> None:
        """Recompute status, bump the order version and append the history record."""
        order.status = override or derive_status(order.items, order.status)
        order.updated_at = utcnow()
        item_id = targets[0][0].id if targets and len(targets) == 1 else None
        self._append_history(order, principal, action, details, item_id)
        self.session.flush()

    def _append_history(
        self,
        order: PurchaseOrder,
        principal: Principal,
        action: PurchaseHistoryAction,
        details: str,
        item_id: Optional[int] = None,
    ) -> PurchaseHistory:
        record = PurchaseHistory(
            purchase_order_id=order.id,
            purchase_order_item_id=item_id,
            action=action,
            performed_by_user_id=principal.user_id,
            details=details,
        )
        self.session.add(record)
        return record

    def _after_commit(
        self,
        order: PurchaseOrder,
        principal: Principal,
        action: PurchaseHistoryAction,
        previous_status: PurchaseOrderStatus,
        reason: Optional[str] = None,
    ) -> PurchaseOrder:
        self._log_operation(action.value.lower(), "PurchaseOrder", order.id, principal.user_id,
                            {"from": previous_status.value, "to": order.status.value})
        if order.status != previous_status:
            self._publish(
                PurchaseOrderStatusChanged(
                    purchase_order_id=order.id,
                    action=action.value,
                    previous_status=previous_status.value,
                    new_status=order.status.value,
                    performed_by_user_id=principal.user_id,
                    reason=reason,
                )
            )
        return order
