# tests/api/test_supplier_applications_api.py

from fastapi.testclient import TestClient

from marketplace.services.notifier import NotificationKind
from tests.utils.auth import get_user_authentication_headers

APPLICANT = get_user_authentication_headers("sup_new", ["individual"])
ADMIN = get_user_authentication_headers("admin_1", ["admin"])

APPLICATION = {
    "display_name": "Rain",
    "full_name": "Test Supplier",
    "company_or_shop_name": "Rain Supplies Co",
    "phone_with_country": "+96550000000",
    "email": "supplier@example.com",
    "plan_type": "flat_fee",
}


def _submit(test_client):
    response = test_client.post("/api/v1/supplier-applications", json=APPLICATION, headers=APPLICANT)
    assert response.status_code == 201
    return response.json()


def test_submit_and_list_mine(test_client: TestClient):
    application = _submit(test_client)

    assert application["status"] == "pending"
    assert application["plan_type"] == "flat_fee"
    mine = test_client.get("/api/v1/supplier-applications/mine", headers=APPLICANT).json()
    assert [a["id"] for a in mine] == [application["id"]]


def test_approve_once(notifier, test_client: TestClient):
    application = _submit(test_client)
    url = f"/api/v1/admin/supplier-applications/{application['id']}/approve"

    approved = test_client.post(url, headers=ADMIN)
    again = test_client.post(url, headers=ADMIN)

    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["reviewer_id"] == "admin_1"
    assert again.status_code == 409
    assert notifier.kinds() == [NotificationKind.supplier_application_approved]
    assert notifier.calls[0][0] == "sup_new"


def test_reject_with_notes(notifier, test_client: TestClient):
    application = _submit(test_client)

    response = test_client.post(
        f"/api/v1/admin/supplier-applications/{application['id']}/reject",
        json={"notes": "Missing trade licence"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert response.json()["review_notes"] == "Missing trade licence"
    assert notifier.calls[0][2]["notes"] == "Missing trade licence"


def test_admin_routes_require_admin(test_client: TestClient):
    application = _submit(test_client)

    assert test_client.get("/api/v1/admin/supplier-applications", headers=APPLICANT).status_code == 403
    assert test_client.post(
        f"/api/v1/admin/supplier-applications/{application['id']}/approve", headers=APPLICANT
    ).status_code == 403


def test_admin_lists_by_status(test_client: TestClient):
    _submit(test_client)

    pending = test_client.get("/api/v1/admin/supplier-applications?status=pending", headers=ADMIN)
    approved = test_client.get("/api/v1/admin/supplier-applications?status=approved", headers=ADMIN)

    assert len(pending.json()) == 1
    assert approved.json() == []


def test_approve_unknown_application(test_client: TestClient):
    response = test_client.post("/api/v1/admin/supplier-applications/sap_missing/approve", headers=ADMIN)
    assert response.status_code == 404
