# services/vendor_service.py

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from core.config import settings
from core.supabase_client import get_supabase_client
from core.stripe_helpers import create_transfer
from core.logging_config import logger
from core.utils import utc_now_iso


def calculate_platform_fee(amount_cents: int, fee_percent: Optional[float] = None) -> Tuple[int, int]:
    """(platform_fee, net_amount) in cents; half cents round up."""
    percent = settings.PLATFORM_FEE_PERCENT if fee_percent is None else fee_percent
    exact = Decimal(amount_cents) * Decimal(str(percent)) / 100
    fee = int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return fee, amount_cents - fee


def recalculate_rating(vendor_id: str) -> dict:
    """Average of all reviews (1 decimal) and the review count, written back to the profile."""
    client = get_supabase_client()
    reviews = (
        client.table("vendor_reviews")
        .select("rating")
        .eq("vendor_id", vendor_id)
        .execute()
    ).data or []

    count = len(reviews)
    rating = round(sum(r["rating"] for r in reviews) / count, 1) if count else 0

    update = {"rating": rating, "review_count": count, "updated_at": utc_now_iso()}
    client.table("vendor_profiles").update(update).eq("id", vendor_id).execute()
    return update


def record_payment(
    vendor: dict,
    payer_id: str,
    amount_cents: int,
    description: Optional[str] = None,
    permit_id: Optional[str] = None,
) -> dict:
    """
    Store a PENDING marketplace transaction, then transfer the net amount
    when the vendor has a connected Stripe account. The row exists before
    any money moves; a failed transfer marks it FAILED and re-raises.
    Webhook events settle the status later.
    """
    fee, net = calculate_platform_fee(amount_cents)

    client = get_supabase_client()
    res = client.table("vendor_transactions").insert({
        "vendor_id": vendor["id"],
        "payer_id": payer_id,
        "permit_id": permit_id,
        "amount": amount_cents,
        "platform_fee": fee,
        "net_amount": net,
        "description": description,
        "status": "PENDING",
        "stripe_payment_id": None,
        "created_at": utc_now_iso(),
    }).execute()
    transaction = res.data[0]

    if not vendor.get("stripe_connect_id"):
        return transaction

    try:
        transfer = create_transfer(
            net,
            vendor["stripe_connect_id"],
            metadata={
                "transactionId": transaction["id"],
                "vendorId": vendor["id"],
                "payerId": payer_id,
                "permitId": permit_id or "",
            },
        )
    except Exception:
        logger.exception(f"Transfer to vendor {vendor['id']} failed for transaction {transaction['id']}")
        client.table("vendor_transactions").update({
            "status": "FAILED",
            "updated_at": utc_now_iso(),
        }).eq("id", transaction["id"]).execute()
        raise

    logger.info(f"Created transfer {transfer.id} of {net} cents to vendor {vendor['id']}")
    updated = (
        client.table("vendor_transactions")
        .update({"stripe_payment_id": transfer.id, "updated_at": utc_now_iso()})
        .eq("id", transaction["id"])
        .execute()
    )
    return updated.data[0] if updated.data else {**transaction, "stripe_payment_id": transfer.id}
