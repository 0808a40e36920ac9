# tests/test_billing.py

"""
Tests for subscriptions, checkout and the Stripe webhooks.
"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import stripe

from core.config import settings


@pytest.fixture
def webhook_secrets(monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    monkeypatch.setattr(settings, "STRIPE_CONNECT_WEBHOOK_SECRET", "whsec_connect")


@pytest.fixture
def signed():
    """Signature checks pass; the body is parsed by the endpoint itself."""
    with patch("core.stripe_helpers.stripe.Webhook.construct_event", return_value={}) as construct:
        yield construct


def post_event(client, path, event_type, obj):
    return client.post(
        path,
        content=json.dumps({"type": event_type, "data": {"object": obj}}),
        headers={"stripe-signature": "t=1,v1=abc", "content-type": "application/json"},
    )


# ============================================================
# Subscription state
# ============================================================
def test_no_subscription_means_free_plan(client, db, as_owner):
    data = client.get("/subscriptions/me").json()["data"]
    assert data == {
        "plan": "FREE",
        "status": "ACTIVE",
        "ai_credits_remaining": settings.FREE_PLAN_AI_CREDITS,
        "current_period_end": None,
    }


def test_checkout_creates_customer_once(client, db, as_owner, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_ANNUAL_PRICE_ID", "price_annual")
    fake_stripe = MagicMock()
    fake_stripe.Customer.create.return_value = SimpleNamespace(id="cus_1")
    fake_stripe.checkout.Session.create.return_value = SimpleNamespace(url="https://checkout.stripe.test/s/1")

    with patch("core.stripe_helpers.get_stripe_client", return_value=fake_stripe):
        first = client.post("/subscriptions/checkout")
        client.post("/subscriptions/checkout")

    assert first.json()["data"] == {"url": "https://checkout.stripe.test/s/1"}
    fake_stripe.Customer.create.assert_called_once()
    assert db.rows("users", id=as_owner.id)[0]["stripe_customer_id"] == "cus_1"
    session_kwargs = fake_stripe.checkout.Session.create.call_args.kwargs
    assert session_kwargs["metadata"] == {"userId": as_owner.id}
    assert session_kwargs["line_items"] == [{"price": "price_annual", "quantity": 1}]


def test_portal_without_customer_is_400(client, db, as_owner):
    response = client.post("/subscriptions/portal")
    assert response.status_code == 400
    assert response.json()["detail"] == "No billing account found. Subscribe to a plan first."


# ============================================================
# Billing webhook
# ============================================================
def test_webhook_rejects_bad_signature(client, db, webhook_secrets):
    error = stripe.SignatureVerificationError("No signatures found", "t=1,v1=bad")
    with patch("core.stripe_helpers.stripe.Webhook.construct_event", side_effect=error):
        response = post_event(client, "/webhooks/stripe", "checkout.session.completed", {})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid webhook signature"


def test_webhook_requires_signature_header(client, db, webhook_secrets):
    response = client.post("/webhooks/stripe", content=b"{}")
    assert response.status_code == 400


def test_webhook_without_secret_is_500(client, db, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", None)
    response = post_event(client, "/webhooks/stripe", "checkout.session.completed", {})
    assert response.status_code == 500


def test_checkout_completed_activates_annual_plan(client, db, webhook_secrets, signed):
    response = post_event(client, "/webhooks/stripe", "checkout.session.completed", {
        "id": "cs_1", "customer": "cus_1", "subscription": "sub_1", "metadata": {"userId": "user-owner"},
    })

    assert response.json() == {"received": True}
    sub = db.rows("subscriptions", user_id="user-owner")[0]
    assert (sub["plan"], sub["status"], sub["stripe_subscription_id"]) == ("ANNUAL", "ACTIVE", "sub_1")
    assert sub["ai_credits_remaining"] == settings.PAID_PLAN_AI_CREDITS


def test_subscription_lifecycle(client, db, webhook_secrets, signed):
    db.seed("subscriptions", {"user_id": "user-owner", "plan": "ANNUAL", "status": "ACTIVE", "stripe_subscription_id": "sub_1"})

    post_event(client, "/webhooks/stripe", "customer.subscription.updated", {
        "id": "sub_1", "status": "past_due", "current_period_end": 1767225600, "cancel_at_period_end": True,
    })
    sub = db.rows("subscriptions")[0]
    assert sub["status"] == "PAST_DUE"
    assert sub["current_period_end"].startswith("2026-01-01")
    assert sub["cancel_at_period_end"] is True

    post_event(client, "/webhooks/stripe", "customer.subscription.deleted", {"id": "sub_1"})
    sub = db.rows("subscriptions")[0]
    assert (sub["plan"], sub["status"]) == ("FREE", "CANCELLED")
    assert sub["ai_credits_remaining"] == settings.FREE_PLAN_AI_CREDITS


def test_payment_failed_marks_past_due(client, db, webhook_secrets, signed):
    db.seed("subscriptions", {"user_id": "user-owner", "status": "ACTIVE", "stripe_subscription_id": "sub_1"})

    post_event(client, "/webhooks/stripe", "invoice.payment_failed", {"subscription": "sub_1"})

    assert db.rows("subscriptions")[0]["status"] == "PAST_DUE"


def test_unknown_event_is_acknowledged(client, db, webhook_secrets, signed):
    assert post_event(client, "/webhooks/stripe", "charge.refunded", {}).json() == {"received": True}


# ============================================================
# Connect webhook
# ============================================================
def test_connect_account_verification(client, db, webhook_secrets, signed):
    db.seed("vendor_profiles", {"id": "v-1", "stripe_connect_id": "acct_1", "is_verified": False})

    post_event(client, "/webhooks/stripe-connect", "account.updated", {"id": "acct_1", "charges_enabled": True, "details_submitted": False})
    assert db.rows("vendor_profiles")[0]["is_verified"] is False

    response = post_event(client, "/webhooks/stripe-connect", "account.updated", {"id": "acct_1", "charges_enabled": True, "details_submitted": True})
    assert response.json() == {"received": True, "type": "account.updated"}
    assert db.rows("vendor_profiles")[0]["is_verified"] is True


def test_connect_transfer_status(client, db, webhook_secrets, signed):
    db.seed("vendor_transactions", {"id": "tx-1", "stripe_payment_id": "tr_1", "status": "PENDING"})

    post_event(client, "/webhooks/stripe-connect", "transfer.created", {"id": "tr_1"})
    assert db.rows("vendor_transactions")[0]["status"] == "COMPLETED"

    post_event(client, "/webhooks/stripe-connect", "transfer.reversed", {"id": "tr_1"})
    assert db.rows("vendor_transactions")[0]["status"] == "FAILED"


def test_connect_transfer_matches_transaction_before_id_is_stored(client, db, webhook_secrets, signed):
    db.seed("vendor_transactions", {"id": "tx-1", "stripe_payment_id": None, "status": "PENDING"})

    post_event(client, "/webhooks/stripe-connect", "transfer.created", {"id": "tr_9", "metadata": {"transactionId": "tx-1"}})

    tx = db.rows("vendor_transactions")[0]
    assert (tx["status"], tx["stripe_payment_id"]) == ("COMPLETED", "tr_9")


def test_connect_handler_errors_are_acknowledged(client, db, webhook_secrets, signed):
    # account.updated without an id fails inside the handler
    response = post_event(client, "/webhooks/stripe-connect", "account.updated", {"charges_enabled": True, "details_submitted": True})
    assert response.status_code == 200
