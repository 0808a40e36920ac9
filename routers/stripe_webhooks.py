# routers/stripe_webhooks.py

from fastapi import APIRouter, Request, Header
from typing import Optional
from datetime import datetime, timezone
import json

from core.config import settings
from core.logging_config import logger
from core.supabase_client import get_supabase_client
from core.stripe_helpers import construct_event
from core.utils import utc_now_iso
from models.enums import SubscriptionPlan, SubscriptionStatus, TransactionStatus


router = APIRouter(
    prefix="/webhooks",
    tags=["Webhooks"],
)


def _timestamp(value) -> Optional[str]:
    """Stripe sends unix seconds."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).isoformat()


def _update_subscription_by_stripe_id(stripe_subscription_id: str, update: dict) -> int:
    client = get_supabase_client()
    res = (
        client.table("subscriptions")
        .update({**update, "updated_at": utc_now_iso()})
        .eq("stripe_subscription_id", stripe_subscription_id)
        .execute()
    )
    updated = len(res.data or [])
    if not updated:
        logger.warning(f"No subscription row for Stripe subscription {stripe_subscription_id}")
    return updated


# ============================================================
# Subscription events
# ============================================================
def handle_checkout_completed(session: dict):
    user_id = (session.get("metadata") or {}).get("userId")
    if not user_id:
        logger.warning(f"checkout.session.completed {session.get('id')} has no userId metadata")
        return

    client = get_supabase_client()
    client.table("subscriptions").upsert(
        {
            "user_id": user_id,
            "plan": SubscriptionPlan.ANNUAL.value,
            "status": SubscriptionStatus.ACTIVE.value,
            "ai_credits_remaining": settings.PAID_PLAN_AI_CREDITS,
            "stripe_customer_id": session.get("customer"),
            "stripe_subscription_id": session.get("subscription"),
            "updated_at": utc_now_iso(),
        },
        on_conflict="user_id",
    ).execute()
    logger.info(f"Activated annual plan for user {user_id}")


def handle_subscription_updated(subscription: dict):
    status = SubscriptionStatus.ACTIVE if subscription.get("status") == "active" else SubscriptionStatus.PAST_DUE
    _update_subscription_by_stripe_id(subscription["id"], {
        "status": status.value,
        "current_period_start": _timestamp(subscription.get("current_period_start")),
        "current_period_end": _timestamp(subscription.get("current_period_end")),
        "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
    })


def handle_subscription_deleted(subscription: dict):
    _update_subscription_by_stripe_id(subscription["id"], {
        "plan": SubscriptionPlan.FREE.value,
        "status": SubscriptionStatus.CANCELLED.value,
        "ai_credits_remaining": settings.FREE_PLAN_AI_CREDITS,
        "cancel_at_period_end": False,
    })


def handle_payment_failed(invoice: dict):
    subscription_id = invoice.get("subscription")
    if subscription_id:
        _update_subscription_by_stripe_id(subscription_id, {"status": SubscriptionStatus.PAST_DUE.value})


SUBSCRIPTION_HANDLERS = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_failed": handle_payment_failed,
}


@router.post(
    "/stripe",
    summary="Stripe billing webhook",
    description="""
    Keeps `subscriptions` in sync with Stripe:
    - `checkout.session.completed`: activates the annual plan
    - `customer.subscription.updated`: status and billing period
    - `customer.subscription.deleted`: back to the free plan
    - `invoice.payment_failed`: marks the subscription past due

    The payload must carry a valid `stripe-signature` for `STRIPE_WEBHOOK_SECRET`.
    """,
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
):
    body = await request.body()
    construct_event(body, stripe_signature, settings.STRIPE_WEBHOOK_SECRET)

    event = json.loads(body.decode("utf-8"))
    event_type = event.get("type")
    event_data = event.get("data", {}).get("object", {})

    logger.info(f"Received Stripe webhook event: {event_type}")

    handler = SUBSCRIPTION_HANDLERS.get(event_type)
    if handler:
        handler(event_data)

    return {"received": True}


# ============================================================
# Connect events (vendor payouts)
# ============================================================
def handle_account_updated(account: dict):
    if not (account.get("charges_enabled") and account.get("details_submitted")):
        return

    client = get_supabase_client()
    client.table("vendor_profiles").update({
        "is_verified": True,
        "updated_at": utc_now_iso(),
    }).eq("stripe_connect_id", account["id"]).execute()
    logger.info(f"Verified vendor for connected account {account['id']}")


def _set_transaction_status(transfer: dict, status: TransactionStatus):
    """
    Match on the transaction id carried in the transfer metadata; the
    event can arrive before the row has its `stripe_payment_id`.
    """
    client = get_supabase_client()
    update = {"status": status.value, "updated_at": utc_now_iso()}

    transaction_id = (transfer.get("metadata") or {}).get("transactionId")
    if transaction_id:
        update["stripe_payment_id"] = transfer["id"]
        client.table("vendor_transactions").update(update).eq("id", transaction_id).execute()
    else:
        client.table("vendor_transactions").update(update).eq("stripe_payment_id", transfer["id"]).execute()


CONNECT_HANDLERS = {
    "account.updated": handle_account_updated,
    "transfer.created": lambda t: _set_transaction_status(t, TransactionStatus.COMPLETED),
    "transfer.reversed": lambda t: _set_transaction_status(t, TransactionStatus.FAILED),
}


@router.post("/stripe-connect", summary="Stripe Connect webhook")
async def stripe_connect_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
):
    """
    Vendor account and transfer events. Handler failures are logged and
    still acknowledged so Stripe does not retry them.
    """
    body = await request.body()
    construct_event(body, stripe_signature, settings.STRIPE_CONNECT_WEBHOOK_SECRET)

    event = json.loads(body.decode("utf-8"))
    event_type = event.get("type")
    event_data = event.get("data", {}).get("object", {})

    logger.info(f"Received Stripe Connect webhook event: {event_type}")

    handler = CONNECT_HANDLERS.get(event_type)
    if handler:
        try:
            handler(event_data)
        except Exception as e:
            logger.error(f"Stripe Connect handler for {event_type} failed: {e}")

    return {"received": True, "type": event_type}
