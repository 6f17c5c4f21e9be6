# tests/services/test_purchase_service.py
from decimal import Decimal

import pytest

from app.core.events import PurchaseOrderCreated, PurchaseOrderStatusChanged
from app.core.exceptions import (
    ConcurrentModificationException,
    EntityNotFoundException,
    ForbiddenException,
    InvalidStatusTransitionException,
    ValidationException,
)
from app.db.models import (
    PurchaseHistoryAction,
    PurchaseOrder,
    PurchaseOrderStatus as Status,
    Stock,
    StockMovement,
)
from app.repositories.purchase_repository import PurchaseHistoryRepository
from app.repositories.stock_repository import StockRepository
from app.services.purchase_service import PurchaseService


def accept(service, order, principal, quantities, **kwargs):
    items = [
        {"item_id": item.id, "quantity_accepted": quantity}
        for item, quantity in zip(order.items, quantities)
        if quantity is not None
    ]
    return service.accept_quantities(order.id, principal, items, **kwargs)


def register(service, order, principal, quantities):
    items = [
        {"item_id": item.id, "quantity_registered": quantity}
        for item, quantity in zip(order.items, quantities)
        if quantity is not None
    ]
    return service.register_received(order.id, principal, items)


def verify(service, order, principal, prices):
    items = [
        {"item_id": item.id, "buying_price": buying, "unit_price": unit}
        for item, (buying, unit) in zip(order.items, prices)
    ]
    return service.verify_finance(order.id, principal, items)


@pytest.fixture()
def processed_order(purchase_service, make_order, principals):
    """Order with items 10/5, accepted 8/5, registered 8/4 and priced 100/50."""
    order = make_order()
    accept(purchase_service, order, principals["manager"], [8, 5])
    register(purchase_service, order, principals["sales"], [8, 4])
    verify(purchase_service, order, principals["finance"],
           [(Decimal("80.00"), Decimal("100.00")), (Decimal("40.00"), Decimal("50.00"))])
    return order


def history_actions(db_session, order_id):
    return [record.action for record in PurchaseHistoryRepository(db_session).list_for_order(order_id)]


class TestCreateOrder:
    def test_create_defaults_to_callers_branch(self, make_order, seed, event_bus):
        published = []
        event_bus.subscribe(PurchaseOrderCreated, published.append)

        order = make_order()

        assert order.status == Status.PENDING_ADMIN_ACCEPTANCE
        assert order.branch_id == seed["north"].id
        assert order.version == 1
        assert [item.quantity_requested for item in order.items] == [10, 5]
        assert len(published) == 1 and published[0].item_count == 2

    def test_create_writes_created_history(self, make_order, db_session):
        order = make_order()
        assert history_actions(db_session, order.id) == [PurchaseHistoryAction.CREATED]

    def test_only_sales_may_create(self, purchase_service, principals, product_ids):
        data = {"items": [{"product_id": product_ids[0], "quantity_requested": 1}]}
        with pytest.raises(ForbiddenException):
            purchase_service.create_order(data, principals["manager"])

    def test_create_rejects_bad_items(self, purchase_service, principals, product_ids):
        with pytest.raises(ValidationException):
            purchase_service.create_order({"items": []}, principals["sales"])
        duplicate = {"items": [{"product_id": product_ids[0], "quantity_requested": 1}] * 2}
        with pytest.raises(ValidationException):
            purchase_service.create_order(duplicate, principals["sales"])
        with pytest.raises(ValidationException):
            purchase_service.create_order(
                {"items": [{"product_id": product_ids[0], "quantity_requested": 0}]}, principals["sales"]
            )

    def test_create_unknown_product(self, purchase_service, principals):
        with pytest.raises(EntityNotFoundException):
            purchase_service.create_order(
                {"items": [{"product_id": 9999, "quantity_requested": 1}]}, principals["sales"]
            )

    def test_sales_cannot_create_for_other_branch(self, purchase_service, principals, product_ids, seed):
        data = {"branch_id": seed["south"].id,
                "items": [{"product_id": product_ids[0], "quantity_requested": 1}]}
        with pytest.raises(EntityNotFoundException):
            purchase_service.create_order(data, principals["sales"])


class TestEditItems:
    def test_replace_items_while_pending(self, purchase_service, make_order, principals, product_ids, db_session):
        order = make_order()
        data = {"items": [
            {"product_id": product_ids[0], "quantity_requested": 12},
            {"product_id": product_ids[2], "quantity_requested": 3},
        ], "notes": "Bigger wallet order"}

        order = purchase_service.edit_order_items(order.id, principals["sales"], data)

        assert sorted((i.product_id, i.quantity_requested) for i in order.items) == [
            (product_ids[0], 12), (product_ids[2], 3)
        ]
        assert order.notes == "Bigger wallet order"
        assert order.version == 2
        records = PurchaseHistoryRepository(db_session).list_for_order(order.id)
        assert records[-1].action == PurchaseHistoryAction.EDITED
        assert records[-1].purchase_order_item_id is None

    def test_replace_items_after_acceptance_fails(self, purchase_service, make_order, principals, product_ids):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 5])
        data = {"items": [{"product_id": product_ids[0], "quantity_requested": 1}]}
        with pytest.raises(InvalidStatusTransitionException):
            purchase_service.edit_order_items(order.id, principals["sales"], data)


class TestAcceptance:
    def test_accept_sets_quantities_and_status(self, purchase_service, make_order, principals):
        order = make_order()
        order = accept(purchase_service, order, principals["manager"], [8, 5])

        assert order.status == Status.ACCEPTED_BY_ADMIN
        assert [item.quantity_accepted for item in order.items] == [8, 5]
        assert all(item.accepted_by_user_id == principals["manager"].user_id for item in order.items)

    def test_accept_is_all_or_nothing(self, purchase_service, make_order, principals, query_service):
        order = make_order()
        first, second = order.items
        items = [
            {"item_id": first.id, "quantity_accepted": 8},
            {"item_id": second.id, "quantity_accepted": 6},
        ]
        with pytest.raises(ValidationException) as exc_info:
            purchase_service.accept_quantities(order.id, principals["manager"], items)
        assert "items[1].quantity_accepted" in exc_info.value.errors

        reloaded = query_service.get_by_id(order.id, principals["manager"])
        assert reloaded.status == Status.PENDING_ADMIN_ACCEPTANCE
        assert all(item.quantity_accepted is None for item in reloaded.items)
        assert reloaded.version == 1

    def test_accept_requires_manager(self, purchase_service, make_order, principals):
        order = make_order()
        with pytest.raises(ForbiddenException):
            accept(purchase_service, order, principals["finance"], [8, 5])

    def test_declining_everything_rejects(self, purchase_service, make_order, principals, db_session):
        order = make_order()
        order = accept(purchase_service, order, principals["manager"], [0, 0])

        assert order.status == Status.REJECTED
        assert order.rejection_reason
        assert history_actions(db_session, order.id)[-1] == PurchaseHistoryAction.ACCEPTED

    def test_declining_one_line_keeps_order_open(self, purchase_service, make_order, principals):
        order = make_order()
        order = accept(purchase_service, order, principals["manager"], [0, None])

        assert order.status == Status.PENDING_ADMIN_ACCEPTANCE
        assert order.rejection_reason is None
        assert order.items[1].quantity_accepted is None

        order = accept(purchase_service, order, principals["manager"], [None, 5])
        assert order.status == Status.ACCEPTED_BY_ADMIN
        assert [item.quantity_accepted for item in order.items] == [0, 5]

    def test_declining_remaining_lines_later_rejects(self, purchase_service, make_order, principals):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [0, None])
        order = accept(purchase_service, order, principals["manager"], [None, 0])

        assert order.status == Status.REJECTED

    def test_unknown_item_is_not_found(self, purchase_service, make_order, principals):
        order = make_order()
        with pytest.raises(EntityNotFoundException):
            purchase_service.accept_quantities(
                order.id, principals["manager"], [{"item_id": 9999, "quantity_accepted": 1}]
            )

    def test_edit_accepted_quantities(self, purchase_service, make_order, principals):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 5])
        first = order.items[0]

        order = purchase_service.edit_accepted_quantities(
            order.id, principals["manager"], [{"item_id": first.id, "quantity_accepted": 10}]
        )
        assert order.get_item(first.id).quantity_accepted == 10

        with pytest.raises(ValidationException):
            purchase_service.edit_accepted_quantities(
                order.id, principals["manager"],
                [{"item_id": item.id, "quantity_accepted": 0} for item in order.items],
            )


class TestRegistration:
    def test_partial_registration(self, purchase_service, make_order, principals):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 5])
        order = register(purchase_service, order, principals["sales"], [8, None])

        assert order.status == Status.PARTIALLY_REGISTERED
        assert order.registered_items == 1

    def test_registration_can_repeat_until_verified(self, purchase_service, make_order, principals):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 5])
        register(purchase_service, order, principals["sales"], [7, 5])
        order = register(purchase_service, order, principals["sales"], [8, None])

        first = order.items[0]
        assert first.quantity_registered == 8
        assert first.registration_edit_count == 2
        assert order.status == Status.COMPLETELY_REGISTERED

    def test_over_receipt_is_recorded(self, purchase_service, make_order, principals, db_session):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 5])
        order = register(purchase_service, order, principals["sales"], [9, 5])

        assert order.items[0].quantity_registered == 9
        assert order.items[0].is_over_received
        last = PurchaseHistoryRepository(db_session).list_for_order(order.id)[-1]
        assert "over accepted" in last.details

    def test_register_declined_item_fails(self, purchase_service, make_order, principals):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 0])
        with pytest.raises(InvalidStatusTransitionException):
            register(purchase_service, order, principals["sales"], [None, 1])

    def test_register_before_acceptance_fails(self, purchase_service, make_order, principals):
        order = make_order()
        with pytest.raises(InvalidStatusTransitionException):
            register(purchase_service, order, principals["sales"], [8, 5])

    def test_other_branch_sales_sees_not_found(self, purchase_service, make_order, principals):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 5])
        with pytest.raises(EntityNotFoundException):
            register(purchase_service, order, principals["sales_south"], [8, 5])

    def test_register_after_verification_fails(self, purchase_service, processed_order, principals):
        with pytest.raises(InvalidStatusTransitionException):
            register(purchase_service, processed_order, principals["sales"], [7, None])

    def test_manager_edits_registered_quantity(self, purchase_service, make_order, principals):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 5])
        register(purchase_service, order, principals["sales"], [8, 5])
        second = order.items[1]

        order = purchase_service.edit_registered_quantities(
            order.id, principals["manager"], [{"item_id": second.id, "quantity_registered": 4}]
        )
        assert order.get_item(second.id).quantity_registered == 4


class TestFinance:
    def test_verification_prices_items(self, processed_order):
        assert processed_order.status == Status.FULLY_FINANCE_PROCESSED
        first = processed_order.items[0]
        assert first.finance_verified
        assert first.unit_price == Decimal("100.00")
        assert first.profit_margin == Decimal("25.00")

    def test_markup_fills_missing_unit_price(self, purchase_service, make_order, principals):
        order = make_order(quantities=(10,))
        accept(purchase_service, order, principals["manager"], [10])
        register(purchase_service, order, principals["sales"], [10])

        order = purchase_service.verify_finance(
            order.id, principals["finance"],
            [{"item_id": order.items[0].id, "buying_price": Decimal("10.00")}],
        )
        assert order.items[0].unit_price == Decimal("13.00")
        assert order.status == Status.FULLY_FINANCE_PROCESSED

    def test_unit_price_must_exceed_buying(self, purchase_service, make_order, principals):
        order = make_order(quantities=(10,))
        accept(purchase_service, order, principals["manager"], [10])
        register(purchase_service, order, principals["sales"], [10])
        with pytest.raises(ValidationException):
            purchase_service.verify_finance(
                order.id, principals["finance"],
                [{"item_id": order.items[0].id, "buying_price": "20.00", "unit_price": "15.00"}],
            )

    def test_unregistered_item_cannot_be_verified(self, purchase_service, make_order, principals):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 5])
        register(purchase_service, order, principals["sales"], [8, None])
        with pytest.raises(InvalidStatusTransitionException):
            purchase_service.verify_finance(
                order.id, principals["finance"],
                [{"item_id": order.items[1].id, "unit_price": "50.00"}],
            )

    def test_sales_cannot_verify(self, purchase_service, make_order, principals):
        order = make_order()
        with pytest.raises(ForbiddenException):
            purchase_service.verify_finance(
                order.id, principals["sales"], [{"item_id": order.items[0].id, "unit_price": "1.00"}]
            )

    def test_edit_prices_keeps_verification(self, purchase_service, processed_order, principals):
        first = processed_order.items[0]
        order = purchase_service.edit_prices(
            processed_order.id, principals["finance"],
            [{"item_id": first.id, "unit_price": Decimal("120.00")}],
        )
        edited = order.get_item(first.id)
        assert edited.unit_price == Decimal("120.00")
        assert edited.finance_verified
        assert edited.price_edit_count == 2


class TestApproval:
    def test_full_workflow_reaches_fully_approved(self, purchase_service, processed_order, principals, db_session):
        order = purchase_service.final_approve(processed_order.id, principals["manager"])

        assert order.status == Status.FULLY_APPROVED
        assert order.total_value == Decimal("1000.00")
        assert order.approved_items == 2
        assert history_actions(db_session, order.id) == [
            PurchaseHistoryAction.CREATED,
            PurchaseHistoryAction.ACCEPTED,
            PurchaseHistoryAction.REGISTERED,
            PurchaseHistoryAction.FINANCE_VERIFIED,
            PurchaseHistoryAction.APPROVED,
        ]

    def test_partial_approval(self, purchase_service, processed_order, principals):
        first = processed_order.items[0]
        order = purchase_service.final_approve(processed_order.id, principals["manager"], [first.id])
        assert order.status == Status.PARTIALLY_APPROVED

    def test_approval_books_stock(self, purchase_service, processed_order, principals, db_session, seed):
        purchase_service.final_approve(processed_order.id, principals["manager"])

        repository = StockRepository(db_session)
        first, second = processed_order.items
        stock = repository.get_for_branch_product(seed["north"].id, first.product_id)
        assert stock.quantity == 8
        assert repository.get_for_branch_product(seed["north"].id, second.product_id).quantity == 4
        movements = repository.list_movements(processed_order.id)
        assert len(movements) == 2
        assert movements[0].previous_quantity == 0 and movements[0].new_quantity == 8
        assert first.product.unit_price == Decimal("100.00")

    def test_approved_items_are_frozen(self, purchase_service, processed_order, principals):
        first = processed_order.items[0]
        purchase_service.final_approve(processed_order.id, principals["manager"], [first.id])
        with pytest.raises(InvalidStatusTransitionException):
            purchase_service.edit_prices(
                processed_order.id, principals["manager"],
                [{"item_id": first.id, "unit_price": "150.00"}],
            )

    def test_approval_requires_finance_processing(self, purchase_service, make_order, principals):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 5])
        register(purchase_service, order, principals["sales"], [8, 5])
        with pytest.raises(InvalidStatusTransitionException):
            purchase_service.final_approve(order.id, principals["manager"])


class TestTerminalActions:
    def test_reject_requires_reason(self, purchase_service, make_order, principals):
        order = make_order()
        with pytest.raises(ValidationException):
            purchase_service.reject(order.id, principals["manager"], "   ")

    def test_reject_blocks_further_actions(self, purchase_service, make_order, principals, event_bus):
        changes = []
        event_bus.subscribe(PurchaseOrderStatusChanged, changes.append)
        order = make_order()

        order = purchase_service.reject(order.id, principals["manager"], "Supplier unavailable")
        assert order.status == Status.REJECTED
        assert order.rejection_reason == "Supplier unavailable"
        assert changes[-1].new_status == Status.REJECTED.value

        with pytest.raises(InvalidStatusTransitionException):
            accept(purchase_service, order, principals["manager"], [8, 5])
        with pytest.raises(InvalidStatusTransitionException):
            purchase_service.cancel(order.id, principals["manager"])

    def test_sales_cancels_own_pending_order(self, purchase_service, make_order, principals, query_service):
        order = make_order()
        assert purchase_service.cancel(order.id, principals["sales"], "Ordered by mistake") is True
        reloaded = query_service.get_by_id(order.id, principals["manager"])
        assert reloaded.status == Status.CANCELLED
        assert reloaded.cancellation_reason == "Ordered by mistake"

    def test_sales_cannot_cancel_others_order(self, purchase_service, make_order, principals):
        order = make_order()
        with pytest.raises(ForbiddenException):
            purchase_service.cancel(order.id, principals["sales_other"])

    def test_sales_cannot_cancel_after_acceptance(self, purchase_service, make_order, principals):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 5])
        with pytest.raises(InvalidStatusTransitionException):
            purchase_service.cancel(order.id, principals["sales"])

    def test_manager_cannot_cancel_with_approved_items(self, purchase_service, processed_order, principals):
        purchase_service.final_approve(processed_order.id, principals["manager"], [processed_order.items[0].id])
        with pytest.raises(InvalidStatusTransitionException):
            purchase_service.cancel(processed_order.id, principals["manager"])

    def test_manager_can_reject_partially_approved(self, purchase_service, processed_order, principals):
        purchase_service.final_approve(processed_order.id, principals["manager"], [processed_order.items[0].id])
        order = purchase_service.reject(processed_order.id, principals["manager"], "Rest never arrives")
        assert order.status == Status.REJECTED


class TestConcurrency:
    def test_stale_expected_version_is_refused(self, purchase_service, make_order, principals, query_service):
        order = make_order()
        accept(purchase_service, order, principals["manager"], [8, 5])

        with pytest.raises(ConcurrentModificationException) as exc_info:
            purchase_service.register_received(
                order.id, principals["sales"],
                [{"item_id": order.items[0].id, "quantity_registered": 8}],
                expected_version=1,
            )
        assert exc_info.value.details["actual_version"] == 2
        assert query_service.get_by_id(order.id, principals["manager"]).status == Status.ACCEPTED_BY_ADMIN

    def test_every_action_bumps_version(self, processed_order):
        # create, accept, register, verify
        assert processed_order.version == 4

    def test_concurrent_write_from_stale_session_is_refused(
            self, purchase_service, make_order, principals, session_factory, db_session):
        order = make_order()
        order_id = order.id

        stale_session = session_factory()
        try:
            stale_order = stale_session.get(PurchaseOrder, order_id)
            assert stale_order.version == 1

            accept(purchase_service, order, principals["manager"], [8, 5])

            stale_service = PurchaseService(stale_session)
            with pytest.raises(ConcurrentModificationException):
                with stale_service.transaction():
                    stale_order.notes = "Edited from an outdated copy"
        finally:
            stale_session.close()

        db_session.expire_all()
        current = db_session.get(PurchaseOrder, order_id)
        assert current.version == 2
        assert current.status == Status.ACCEPTED_BY_ADMIN
        assert current.notes is None
