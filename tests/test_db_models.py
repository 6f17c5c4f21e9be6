# tests/test_db_models.py
import pytest

from app.db.models import (
    ModelValidationError,
    PurchaseHistory,
    PurchaseHistoryAction,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    Stock,
)


@pytest.fixture()
def order(db_session, seed):
    sales = seed["users"]["sales"]
    order = PurchaseOrder(branch_id=seed["north"].id, created_by_user_id=sales.id)
    order.items = [PurchaseOrderItem(product_id=seed["products"][0].id, quantity_requested=3)]
    db_session.add(order)
    db_session.commit()
    return order


def test_new_order_defaults(order):
    assert order.status == PurchaseOrderStatus.PENDING_ADMIN_ACCEPTANCE
    assert order.version == 1
    assert order.is_active
    assert order.uuid
    assert order.items[0].finance_verified is False
    assert order.items[0].registration_edit_count == 0


def test_version_increments_on_update(db_session, order):
    order.notes = "Call supplier first"
    db_session.commit()
    assert order.version == 2


def test_history_is_append_only(db_session, order, seed):
    record = PurchaseHistory(
        purchase_order_id=order.id,
        action=PurchaseHistoryAction.CREATED,
        performed_by_user_id=seed["users"]["sales"].id,
        details="Created",
    )
    db_session.add(record)
    db_session.commit()

    record.details = "Rewritten"
    with pytest.raises(ModelValidationError):
        db_session.flush()
    db_session.rollback()

    db_session.delete(record)
    with pytest.raises(ModelValidationError):
        db_session.flush()
    db_session.rollback()


def test_stock_cannot_go_negative(seed):
    stock = Stock(branch_id=seed["north"].id, product_id=seed["products"][0].id, quantity=1)
    with pytest.raises(ModelValidationError):
        stock.quantity = -1


def test_to_dict_serializes_enums_and_totals(order):
    data = order.to_dict()
    assert data["status"] == "PendingAdminAcceptance"
    assert data["total_value"] == "0.00"
    assert data["items"][0]["stage"] == "Requested"
