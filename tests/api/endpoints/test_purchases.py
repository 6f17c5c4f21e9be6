# tests/api/endpoints/test_purchases.py
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.endpoints import auth, purchases
from app.core.security import create_access_token
from app.db.session import get_db


@pytest.fixture()
def client(seed, session_factory):
    # Override the database dependency
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app = FastAPI()
    app.dependency_overrides[get_db] = override_get_db
    app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
    app.include_router(purchases.router, prefix="/purchase-orders", tags=["Purchase Orders"])
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def headers(seed):
    """Bearer headers keyed like the seeded users."""
    return {
        key: {"Authorization": f"Bearer {create_access_token(user.id)}"}
        for key, user in seed["users"].items()
    }


def create_order(client, headers, product_ids, quantities=(10, 5)):
    payload = {
        "notes": "Restock before the weekend",
        "items": [
            {"product_id": product_id, "quantity_requested": quantity, "supplier_name": "Atlas Leather Co"}
            for product_id, quantity in zip(product_ids, quantities)
        ],
    }
    response = client.post("/purchase-orders/", json=payload, headers=headers["sales"])
    assert response.status_code == 201, response.text
    return response.json()


# --- Authentication ---


def test_login_returns_token(client, seed):
    response = client.post(
        "/auth/login",
        data={"username": "manager@example.com", "password": "testpassword"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]


def test_login_json_wrong_password(client, seed):
    response = client.post(
        "/auth/login/json", json={"email": "manager@example.com", "password": "wrong-password"}
    )
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "SECURITY_003"


def test_requests_without_token_are_unauthorized(client):
    response = client.get("/purchase-orders/1")
    assert response.status_code == 401


# --- Workflow ---


def test_full_workflow(client, headers, product_ids):
    order = create_order(client, headers, product_ids)
    assert order["status"] == "PendingAdminAcceptance"
    assert order["version"] == 1
    first, second = order["items"]
    base = f"/purchase-orders/{order['id']}"

    response = client.post(f"{base}/accept", headers=headers["manager"], json={
        "expected_version": 1,
        "items": [
            {"item_id": first["id"], "quantity_accepted": 8},
            {"item_id": second["id"], "quantity_accepted": 5},
        ],
    })
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "AcceptedByAdmin"

    response = client.post(f"{base}/register", headers=headers["sales"], json={
        "items": [
            {"item_id": first["id"], "quantity_registered": 8},
            {"item_id": second["id"], "quantity_registered": 4},
        ],
    })
    assert response.json()["status"] == "CompletelyRegistered"

    response = client.post(f"{base}/finance-verification", headers=headers["finance"], json={
        "items": [
            {"item_id": first["id"], "buying_price": "80.00", "unit_price": "100.00"},
            {"item_id": second["id"], "buying_price": "40.00", "unit_price": "50.00"},
        ],
    })
    assert response.json()["status"] == "FullyFinanceProcessed"

    response = client.post(f"{base}/approve", headers=headers["manager"], json={})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "FullyApproved"
    assert float(body["total_value"]) == 1000.0
    assert all(item["stage"] == "Approved" for item in body["items"])

    history = client.get(f"{base}/history", headers=headers["sales"]).json()
    assert [record["action"] for record in history] == [
        "Created", "Accepted", "Registered", "FinanceVerified", "Approved"
    ]


def test_invalid_acceptance_maps_to_422(client, headers, product_ids):
    order = create_order(client, headers, product_ids)
    first = order["items"][0]
    response = client.post(f"/purchase-orders/{order['id']}/accept", headers=headers["manager"], json={
        "items": [{"item_id": first["id"], "quantity_accepted": 11}],
    })
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "VALIDATION_001"


def test_wrong_role_maps_to_403(client, headers, product_ids):
    order = create_order(client, headers, product_ids)
    first = order["items"][0]
    response = client.post(f"/purchase-orders/{order['id']}/accept", headers=headers["sales"], json={
        "items": [{"item_id": first["id"], "quantity_accepted": 1}],
    })
    assert response.status_code == 403


def test_other_branch_maps_to_404(client, headers, product_ids):
    order = create_order(client, headers, product_ids)
    response = client.get(f"/purchase-orders/{order['id']}", headers=headers["sales_south"])
    assert response.status_code == 404


def test_invalid_transition_maps_to_409(client, headers, product_ids):
    order = create_order(client, headers, product_ids)
    response = client.post(f"/purchase-orders/{order['id']}/approve", headers=headers["manager"], json={})
    assert response.status_code == 409
    assert response.json()["detail"]["details"]["current_status"] == "PendingAdminAcceptance"


def test_stale_version_maps_to_409(client, headers, product_ids):
    order = create_order(client, headers, product_ids)
    response = client.post(f"/purchase-orders/{order['id']}/reject", headers=headers["manager"], json={
        "reason": "Budget frozen", "expected_version": 5,
    })
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "CONCURRENCY_001"


def test_reject_and_cancel(client, headers, product_ids):
    rejected = create_order(client, headers, product_ids)
    response = client.post(f"/purchase-orders/{rejected['id']}/reject", headers=headers["manager"],
                           json={"reason": "Budget frozen"})
    assert response.json()["status"] == "Rejected"

    blank = client.post(f"/purchase-orders/{rejected['id']}/reject", headers=headers["manager"],
                        json={"reason": "   "})
    assert blank.status_code == 422

    cancelled = create_order(client, headers, product_ids)
    response = client.post(f"/purchase-orders/{cancelled['id']}/cancel", headers=headers["sales"], json={})
    assert response.status_code == 200
    assert response.json() == {"id": cancelled["id"], "cancelled": True}

    response = client.post(f"/purchase-orders/{cancelled['id']}/cancel", headers=headers["sales_other"],
                           json={})
    assert response.status_code == 409


def test_replace_items(client, headers, product_ids):
    order = create_order(client, headers, product_ids)
    response = client.put(f"/purchase-orders/{order['id']}/items", headers=headers["sales"], json={
        "items": [{"product_id": product_ids[2], "quantity_requested": 7}],
    })
    assert response.status_code == 200
    body = response.json()
    assert [item["product_id"] for item in body["items"]] == [product_ids[2]]
    assert body["notes"] == "Restock before the weekend"


# --- Queries ---


def test_list_projections(client, headers, product_ids, seed):
    order = create_order(client, headers, product_ids)

    by_status = client.get("/purchase-orders/", params={"status": "PendingAdminAcceptance"},
                           headers=headers["sales"])
    assert [o["id"] for o in by_status.json()] == [order["id"]]

    by_supplier = client.get("/purchase-orders/", params={"supplier": "atlas"}, headers=headers["manager"])
    assert [o["id"] for o in by_supplier.json()] == [order["id"]]

    other_branch = client.get("/purchase-orders/", params={"branch_id": seed["south"].id},
                              headers=headers["sales"])
    assert other_branch.status_code == 404


def test_list_without_filter_is_branch_scoped(client, headers, product_ids):
    order = create_order(client, headers, product_ids)

    manager_view = client.get("/purchase-orders/", headers=headers["manager"])
    assert manager_view.status_code == 200
    assert [o["id"] for o in manager_view.json()] == [order["id"]]

    south_view = client.get("/purchase-orders/", headers=headers["sales_south"])
    assert south_view.status_code == 200
    assert south_view.json() == []


def test_list_by_open_ended_date_range(client, headers, product_ids):
    order = create_order(client, headers, product_ids)

    since = client.get("/purchase-orders/", params={"date_from": "2020-01-01T00:00:00Z"},
                       headers=headers["manager"])
    assert since.status_code == 200
    assert [o["id"] for o in since.json()] == [order["id"]]

    until = client.get("/purchase-orders/", params={"date_to": "2020-01-01T00:00:00+02:00"},
                       headers=headers["manager"])
    assert until.status_code == 200
    assert until.json() == []

    inverted = client.get(
        "/purchase-orders/",
        params={"date_from": "2020-01-02T00:00:00Z", "date_to": "2020-01-01T00:00:00"},
        headers=headers["manager"],
    )
    assert inverted.status_code == 422


def test_stats_endpoint(client, headers, product_ids):
    create_order(client, headers, product_ids)

    response = client.get("/purchase-orders/stats", headers=headers["finance"])
    assert response.status_code == 200
    body = response.json()
    assert body["total_orders"] == 1
    assert body["pending_orders"] == 1

    assert client.get("/purchase-orders/stats", headers=headers["sales"]).status_code == 403
