# routers/notifications.py

from fastapi import APIRouter, Depends, Query

from dependencies.auth import get_current_user, CurrentUser
from core.supabase_client import get_supabase_client
from core.supabase_helpers import fetch_one
from core.errors import handle_supabase_error, not_found
from core.utils import page_range, pagination_meta, utc_now_iso

from models.notification import NotificationUpdate, PushTokenRegister, PushTokenRemove


router = APIRouter(tags=["Notifications"])


def _get_own_notification(notification_id: str, user_id: str) -> dict:
    notification = fetch_one("notifications", id=notification_id, user_id=user_id)
    if not notification:
        raise not_found("Notification")
    return notification


# ============================================================
# INBOX
# ============================================================
@router.get(
    "/notifications",
    summary="List my notifications",
    description="Newest first. `unread_count` always covers the whole inbox.",
)
def list_notifications(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        query = client.table("notifications").select("*", count="exact").eq("user_id", current_user.id)
        if unread_only:
            query = query.eq("is_read", False)

        start, end = page_range(page, page_size)
        res = query.order("created_at", desc=True).range(start, end).execute()

        unread = (
            client.table("notifications")
            .select("id", count="exact")
            .eq("user_id", current_user.id)
            .eq("is_read", False)
            .execute()
        )

        return {
            "success": True,
            "data": {
                "notifications": res.data or [],
                "unread_count": unread.count or 0,
                "pagination": pagination_meta(page, page_size, res.count or 0),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch notifications", 500)


@router.patch("/notifications/{notification_id}", summary="Mark a notification read")
def update_notification(
    notification_id: str,
    payload: NotificationUpdate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        notification = _get_own_notification(notification_id, current_user.id)
        update_data = {"is_read": payload.is_read, "read_at": utc_now_iso() if payload.is_read else None}

        res = client.table("notifications").update(update_data).eq("id", notification_id).execute()
        return {"success": True, "data": res.data[0] if res.data else {**notification, **update_data}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update notification", 500)


@router.delete("/notifications/{notification_id}", summary="Delete a notification")
def delete_notification(notification_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        _get_own_notification(notification_id, current_user.id)
        client.table("notifications").delete().eq("id", notification_id).execute()
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete notification", 500)


@router.post("/notifications/mark-all-read", summary="Mark all notifications read")
def mark_all_read(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        res = (
            client.table("notifications")
            .update({"is_read": True, "read_at": utc_now_iso()})
            .eq("user_id", current_user.id)
            .eq("is_read", False)
            .execute()
        )
        return {"success": True, "data": {"updated": len(res.data or [])}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to mark notifications read", 500)


# ============================================================
# PUSH TOKENS
# ============================================================
@router.post("/push-tokens", summary="Register a device push token")
def register_push_token(payload: PushTokenRegister, current_user: CurrentUser = Depends(get_current_user)):
    """
    Upsert by token. A device that changes hands is rebound to the
    user who registered it last.
    """
    client = get_supabase_client()

    try:
        res = client.table("push_tokens").upsert(
            {
                "token": payload.token,
                "platform": payload.platform.value,
                "user_id": current_user.id,
                "updated_at": utc_now_iso(),
            },
            on_conflict="token",
        ).execute()
        return {"success": True, "data": res.data[0] if res.data else None}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to register push token", 500)


@router.delete("/push-tokens", summary="Remove a device push token")
def remove_push_token(payload: PushTokenRemove, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        (
            client.table("push_tokens")
            .delete()
            .eq("token", payload.token)
            .eq("user_id", current_user.id)
            .execute()
        )
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to remove push token", 500)
