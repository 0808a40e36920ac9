# core/stripe_helpers.py

from typing import Optional

import stripe
from fastapi import HTTPException

from core.config import settings
from core.logging_config import logger
from core.supabase_client import get_supabase_client


def get_stripe_client():
    """Get Stripe client instance (module configured with the secret key)."""
    if not settings.STRIPE_SECRET_KEY:
        raise HTTPException(500, "Stripe secret key not configured")

    stripe.api_key = settings.STRIPE_SECRET_KEY
    return stripe


# ============================================================
# Customers
# ============================================================
def get_or_create_customer(user_id: str, email: str, name: Optional[str] = None) -> str:
    """
    Return the user's Stripe customer id, creating the customer on first
    checkout and storing it on `users.stripe_customer_id`.
    """
    client = get_supabase_client()
    user_res = (
        client.table("users")
        .select("id, stripe_customer_id")
        .eq("id", user_id)
        .limit(1)
        .execute()
    )
    existing = user_res.data[0].get("stripe_customer_id") if user_res.data else None
    if existing:
        return existing

    stripe_client = get_stripe_client()
    customer = stripe_client.Customer.create(
        email=email,
        name=name,
        metadata={"userId": user_id},
    )

    client.table("users").upsert({
        "id": user_id,
        "email": email,
        "stripe_customer_id": customer.id,
    }).execute()

    logger.info(f"Created Stripe customer {customer.id} for user {user_id}")
    return customer.id


# ============================================================
# Checkout / Billing portal
# ============================================================
def create_checkout_session(customer_id: str, user_id: str) -> str:
    if not settings.STRIPE_ANNUAL_PRICE_ID:
        raise HTTPException(500, "Stripe annual price not configured")

    stripe_client = get_stripe_client()
    app_url = settings.APP_URL.rstrip("/")

    session = stripe_client.checkout.Session.create(
        customer=customer_id,
        mode="subscription",
        line_items=[{"price": settings.STRIPE_ANNUAL_PRICE_ID, "quantity": 1}],
        success_url=f"{app_url}/dashboard?subscription=success",
        cancel_url=f"{app_url}/pricing?subscription=cancelled",
        metadata={"userId": user_id},
    )
    return session.url


def create_portal_session(customer_id: str) -> str:
    stripe_client = get_stripe_client()
    session = stripe_client.billing_portal.Session.create(
        customer=customer_id,
        return_url=f"{settings.APP_URL.rstrip('/')}/dashboard/settings",
    )
    return session.url


# ============================================================
# Marketplace transfers
# ============================================================
def create_transfer(amount_cents: int, destination: str, metadata: Optional[dict] = None):
    """Send `amount_cents` (already net of the platform fee) to a connected account."""
    stripe_client = get_stripe_client()
    return stripe_client.Transfer.create(
        amount=amount_cents,
        currency="usd",
        destination=destination,
        metadata=metadata or {},
    )


# ============================================================
# Webhooks
# ============================================================
def construct_event(payload: bytes, signature: Optional[str], secret: Optional[str]):
    """
    Verify a webhook payload and return the Stripe event.

    Raises:
        HTTPException 500 when the signing secret is not configured
        HTTPException 400 when the payload or signature is invalid
    """
    if not secret:
        raise HTTPException(500, "Webhook secret not configured")

    if not signature:
        raise HTTPException(400, "Missing stripe-signature header")

    try:
        return stripe.Webhook.construct_event(payload, signature, secret)
    except ValueError as e:
        logger.error(f"Invalid payload in webhook: {e}")
        raise HTTPException(400, "Invalid webhook payload")
    except stripe.SignatureVerificationError as e:
        logger.error(f"Invalid signature in webhook: {e}")
        raise HTTPException(400, "Invalid webhook signature")
