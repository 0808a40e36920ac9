# tests/test_vendors.py

"""
Tests for the vendor marketplace: profiles, search, reviews and payments.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from dependencies.auth import CurrentUser
from services.vendor_service import calculate_platform_fee


VENDOR = {
    "company_name": "Garden State Plumbing",
    "description": "Residential plumbing and gas lines",
    "specialties": ["PLUMBING"],
    "service_areas": ["Mercer", "Princeton"],
}


@pytest.fixture
def vendors(db):
    return db.seed(
        "vendor_profiles",
        {"id": "v-plumb", "user_id": "user-vendor", "company_name": "Garden State Plumbing", "description": "Pipes",
         "service_areas": ["Mercer"], "rating": 4.5, "is_verified": True, "is_active": True},
        {"id": "v-elec", "user_id": "user-elec", "company_name": "Bright Electric", "description": "Panels and wiring",
         "service_areas": ["Mercer", "Somerset"], "rating": 3.9, "is_verified": False, "is_active": True},
        {"id": "v-gone", "user_id": "user-gone", "company_name": "Gone Plumbing", "description": "Closed",
         "service_areas": ["Mercer"], "rating": 5, "is_active": False},
    )


def test_platform_fee():
    assert calculate_platform_fee(10000) == (300, 9700)
    assert calculate_platform_fee(1050, fee_percent=3) == (32, 1018)


def test_platform_fee_rounds_half_cents_up():
    assert calculate_platform_fee(150, fee_percent=3) == (5, 145)
    assert calculate_platform_fee(250, fee_percent=3) == (8, 242)
    assert calculate_platform_fee(1, fee_percent=3) == (0, 1)


def test_specialties_are_public(client, db):
    data = client.get("/vendors/specialties").json()["data"]
    assert {"value": "GENERAL_CONTRACTING", "label": "General Contracting"} in data


def test_create_profile_once(client, db, as_owner):
    first = client.post("/vendors", json=VENDOR)
    assert first.status_code == 201
    profile = first.json()["data"]
    assert profile["rating"] == 0 and profile["is_verified"] is False

    second = client.post("/vendors", json=VENDOR)
    assert second.status_code == 400
    assert second.json()["detail"] == "You already have a vendor profile"

    assert client.get("/vendors/me").json()["data"]["id"] == profile["id"]


def test_profile_needs_specialty(client, db, as_owner):
    assert client.post("/vendors", json={**VENDOR, "specialties": []}).status_code == 400


def test_search_best_rated_first(client, db, as_owner, vendors):
    names = [v["company_name"] for v in client.get("/vendors").json()["data"]["vendors"]]
    assert names == ["Garden State Plumbing", "Bright Electric"]


def test_search_filters(client, db, as_owner, vendors):
    def ids(**params):
        return [v["id"] for v in client.get("/vendors", params=params).json()["data"]["vendors"]]

    assert ids(query="wiring") == ["v-elec"]
    assert ids(query="wiring, (panels)") == []
    assert ids(query="(wiring)") == ["v-elec"]
    assert ids(service_area="Somerset") == ["v-elec"]
    assert ids(is_verified=True) == ["v-plumb"]
    assert ids(min_rating=4) == ["v-plumb"]


def test_search_by_licensed_subcode(client, db, as_owner, vendors):
    db.seed("vendor_licenses", {"vendor_id": "v-elec", "subcode_type": "ELECTRICAL", "license_number": "E-1"})

    assert [v["id"] for v in client.get("/vendors", params={"subcode_type": "ELECTRICAL"}).json()["data"]["vendors"]] == ["v-elec"]
    assert client.get("/vendors", params={"subcode_type": "FIRE"}).json()["data"]["vendors"] == []


def test_inactive_vendor_is_404(client, db, as_owner, vendors):
    assert client.get("/vendors/v-gone").status_code == 404


def test_only_vendor_manages_profile(client, db, as_owner, vendors):
    response = client.patch("/vendors/v-plumb", json={"company_name": "Hijacked"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Only the vendor can manage this profile"


def test_reviews_update_rating(client, db, login, as_owner, outsider_user, vendors):
    db.seed("vendor_reviews", {"vendor_id": "v-elec", "reviewer_id": "user-earlier", "rating": 4})

    response = client.post("/vendors/v-elec/reviews", json={"rating": 5, "comment": "Fast and tidy"})

    assert response.status_code == 201
    assert response.json()["data"]["vendor_rating"]["rating"] == 4.5
    assert db.rows("vendor_profiles", id="v-elec")[0]["review_count"] == 2

    again = client.post("/vendors/v-elec/reviews", json={"rating": 1})
    assert again.json()["detail"] == "You have already reviewed this vendor"


def test_cannot_review_self(client, db, login, vendors):
    login(CurrentUser(id="user-elec", email="elec@example.com"))

    response = client.post("/vendors/v-elec/reviews", json={"rating": 5})
    assert response.status_code == 400
    assert response.json()["detail"] == "You cannot review your own vendor profile"


def test_get_vendor_with_details(client, db, as_owner, vendors):
    db.seed("vendor_licenses", {"vendor_id": "v-plumb", "subcode_type": "PLUMBING", "license_number": "P-1"})
    db.seed("vendor_reviews", {"vendor_id": "v-plumb", "reviewer_id": as_owner.id, "rating": 5})

    data = client.get("/vendors/v-plumb").json()["data"]

    assert data["licenses"][0]["license_number"] == "P-1"
    assert data["reviews"][0]["reviewer"]["name"] == "Olivia Owner"


def test_payment_without_connect_account(client, db, as_owner, vendors):
    response = client.post("/vendors/v-elec/payments", json={"amount_cents": 20000, "description": "Panel upgrade"})

    assert response.status_code == 201
    tx = response.json()["data"]
    assert (tx["platform_fee"], tx["net_amount"], tx["status"]) == (600, 19400, "PENDING")
    assert tx["stripe_payment_id"] is None


def test_payment_transfers_to_connected_account(client, db, as_owner, vendors):
    db.rows("vendor_profiles", id="v-elec")[0]["stripe_connect_id"] = "acct_123"

    with patch("services.vendor_service.create_transfer", return_value=SimpleNamespace(id="tr_1")) as transfer:
        tx = client.post("/vendors/v-elec/payments", json={"amount_cents": 10000}).json()["data"]

    assert transfer.call_args.args[:2] == (9700, "acct_123")
    assert tx["stripe_payment_id"] == "tr_1"
    assert transfer.call_args.kwargs["metadata"]["transactionId"] == tx["id"]
    assert db.rows("vendor_transactions", id=tx["id"])[0]["stripe_payment_id"] == "tr_1"


def test_failed_transfer_leaves_failed_transaction(client, db, as_owner, vendors):
    db.rows("vendor_profiles", id="v-elec")[0]["stripe_connect_id"] = "acct_123"

    with patch("services.vendor_service.create_transfer", side_effect=RuntimeError("card declined")):
        response = client.post("/vendors/v-elec/payments", json={"amount_cents": 10000})

    assert response.status_code == 500
    rows = db.rows("vendor_transactions", vendor_id="v-elec")
    assert len(rows) == 1
    assert (rows[0]["status"], rows[0]["net_amount"], rows[0]["stripe_payment_id"]) == ("FAILED", 9700, None)


def test_cannot_pay_own_profile(client, db, login, vendors):
    login(CurrentUser(id="user-vendor", email="vendor@example.com"))

    response = client.post("/vendors/v-plumb/payments", json={"amount_cents": 100})
    assert response.json()["detail"] == "You cannot pay your own vendor profile"


def test_vendor_sees_own_transactions(client, db, login, vendors):
    db.seed("vendor_transactions", {"vendor_id": "v-plumb", "amount": 100, "created_at": "2026-01-01T00:00:00+00:00"})
    login(CurrentUser(id="user-vendor", email="vendor@example.com"))

    data = client.get("/vendors/v-plumb/transactions").json()["data"]
    assert data["pagination"]["total"] == 1
