# routers/users.py

from fastapi import APIRouter, Depends

from dependencies.auth import get_current_user, CurrentUser
from core.config import settings
from core.supabase_client import get_supabase_client
from core.errors import handle_supabase_error
from core.utils import sanitize, utc_now_iso
from models.notification import UserProfileUpdate


router = APIRouter(
    prefix="/users",
    tags=["Users"],
)


def get_user_subscription(user_id: str) -> dict:
    """
    Current plan for a user. Users without a subscription row are on
    the FREE plan with the free AI credit allowance.
    """
    client = get_supabase_client()
    res = (
        client.table("subscriptions")
        .select("*")
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    if res.data:
        sub = res.data[0]
        return {
            "plan": sub.get("plan") or "FREE",
            "status": sub.get("status") or "ACTIVE",
            "ai_credits_remaining": sub.get("ai_credits_remaining"),
            "current_period_end": sub.get("current_period_end"),
        }

    return {
        "plan": "FREE",
        "status": "ACTIVE",
        "ai_credits_remaining": settings.FREE_PLAN_AI_CREDITS,
        "current_period_end": None,
    }


# ============================================================
# GET /users/me
# ============================================================
@router.get(
    "/me",
    summary="Current user profile",
    description="""
    Profile of the signed-in user with subscription summary and
    counts of owned properties and created permits.
    """,
)
def get_me(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        user_res = client.table("users").select("*").eq("id", current_user.id).limit(1).execute()
        profile = user_res.data[0] if user_res.data else {
            "id": current_user.id,
            "email": current_user.email,
            "name": current_user.name,
            "phone": current_user.phone,
            "avatar_url": None,
            "onboarding_complete": False,
        }

        properties_res = (
            client.table("properties")
            .select("id", count="exact")
            .eq("owner_id", current_user.id)
            .execute()
        )
        permits_res = (
            client.table("permits")
            .select("id", count="exact")
            .eq("creator_id", current_user.id)
            .execute()
        )

        return {
            "success": True,
            "data": {
                **profile,
                "subscription": get_user_subscription(current_user.id),
                "property_count": properties_res.count or 0,
                "permit_count": permits_res.count or 0,
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch profile", 500)


# ============================================================
# PATCH /users/me
# ============================================================
@router.patch("/me", summary="Update current user profile")
def update_me(payload: UserProfileUpdate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    update_data = sanitize(payload.model_dump(exclude_unset=True))

    try:
        res = client.table("users").upsert({
            "id": current_user.id,
            "email": current_user.email,
            **update_data,
            "updated_at": utc_now_iso(),
        }).execute()

        return {"success": True, "data": res.data[0] if res.data else None}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update profile", 500)
