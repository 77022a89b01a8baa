# tests/api/test_checkout_api.py

from fastapi.testclient import TestClient

from tests.utils.auth import get_user_authentication_headers
from tests.utils.factories import create_order, create_payment

BUYER = get_user_authentication_headers("buyer_1", ["individual"])


def test_checkout_returns_redirect(db, test_client: TestClient):
    order = create_order(db)

    response = test_client.post(
        f"/api/v1/orders/{order.id}/checkout", json={"method": "knet"}, headers=BUYER
    )

    assert response.status_code == 200
    body = response.json()
    assert body["order_id"] == order.id
    assert body["payment_id"].startswith("pay_")
    assert "ref=mock_cs_" in body["redirect_url"]


def test_checkout_without_body_defaults_to_card(db, test_client: TestClient):
    order = create_order(db)

    response = test_client.post(f"/api/v1/orders/{order.id}/checkout", headers=BUYER)
    assert response.status_code == 200

    payments = test_client.get(f"/api/v1/orders/{order.id}/payments", headers=BUYER).json()
    assert [p["method"] for p in payments] == ["card"]


def test_checkout_not_pending(db, test_client: TestClient):
    order = create_order(db, status="shipped")

    response = test_client.post(f"/api/v1/orders/{order.id}/checkout", headers=BUYER)

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "ORDER_NOT_PENDING"


def test_checkout_already_paid(db, test_client: TestClient):
    order = create_order(db)
    create_payment(db, order, status="captured")

    response = test_client.post(f"/api/v1/orders/{order.id}/checkout", headers=BUYER)

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "ORDER_ALREADY_PAID"


def test_checkout_someone_elses_order(db, test_client: TestClient):
    order = create_order(db, buyer_id="buyer_2")

    response = test_client.post(f"/api/v1/orders/{order.id}/checkout", headers=BUYER)

    assert response.status_code == 403


def test_verify_after_redirect(db, notifier, test_client: TestClient):
    order = create_order(db)
    checkout = test_client.post(f"/api/v1/orders/{order.id}/checkout", headers=BUYER).json()
    reference = checkout["redirect_url"].split("ref=")[1]

    response = test_client.post(
        f"/api/v1/orders/{order.id}/payments/verify",
        json={"reference": reference},
        headers=BUYER,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "captured"
    assert response.json()["id"] == checkout["payment_id"]
    assert len(notifier.calls) == 1


def test_payments_hidden_from_strangers(db, test_client: TestClient):
    order = create_order(db)
    stranger = get_user_authentication_headers("buyer_2", ["individual"])
    admin = get_user_authentication_headers("admin_1", ["admin"])

    assert test_client.get(f"/api/v1/orders/{order.id}/payments", headers=stranger).status_code == 403
    assert test_client.get(f"/api/v1/orders/{order.id}/payments", headers=admin).status_code == 200
