# routers/subscriptions.py

from fastapi import APIRouter, Depends, HTTPException

from dependencies.auth import get_current_user, CurrentUser
from core.supabase_client import get_supabase_client
from core.logging_config import logger
from core.stripe_helpers import get_or_create_customer, create_checkout_session, create_portal_session
from routers.users import get_user_subscription


router = APIRouter(
    prefix="/subscriptions",
    tags=["Subscriptions"],
)


@router.get("/me", summary="My subscription")
def get_my_subscription(current_user: CurrentUser = Depends(get_current_user)):
    return {"success": True, "data": get_user_subscription(current_user.id)}


@router.post(
    "/checkout",
    summary="Start an annual plan checkout",
    description="""
    Creates (or reuses) the user's Stripe customer and returns the URL of
    a subscription Checkout session for the annual plan. The plan is
    activated by the `checkout.session.completed` webhook, not here.
    """,
)
def create_checkout(current_user: CurrentUser = Depends(get_current_user)):
    if not current_user.email:
        raise HTTPException(400, "An email address is required to subscribe")

    customer_id = get_or_create_customer(current_user.id, current_user.email, current_user.name)
    url = create_checkout_session(customer_id, current_user.id)

    logger.info(f"Checkout session created for user {current_user.id}")
    return {"success": True, "data": {"url": url}}


@router.post("/portal", summary="Open the billing portal")
def create_portal(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    res = (
        client.table("users")
        .select("id, stripe_customer_id")
        .eq("id", current_user.id)
        .limit(1)
        .execute()
    )
    customer_id = res.data[0].get("stripe_customer_id") if res.data else None
    if not customer_id:
        raise HTTPException(400, "No billing account found. Subscribe to a plan first.")

    return {"success": True, "data": {"url": create_portal_session(customer_id)}}
