# services/notification_service.py

from typing import Iterable, Optional

from core.config import settings
from core.supabase_client import get_supabase_client
from core.notifications import send_push_messages
from core.logging_config import logger
from core.permission_helpers import get_permit_user_ids
from core.utils import utc_now_iso
from models.enums import NotificationType


def permit_action_url(permit_id: str) -> str:
    return f"/dashboard/permits/{permit_id}"


def send_notification(
    user_id: str,
    type: NotificationType,
    title: str,
    body: str,
    permit_id: Optional[str] = None,
    action_url: Optional[str] = None,
) -> Optional[dict]:
    """
    Store an in-app notification and push it to the user's registered devices.
    Push delivery is best-effort; the stored row is what the inbox shows.
    """
    client = get_supabase_client()

    try:
        res = client.table("notifications").insert({
            "user_id": user_id,
            "type": str(type),
            "title": title,
            "body": body,
            "permit_id": permit_id,
            "action_url": action_url,
            "is_read": False,
            "created_at": utc_now_iso(),
        }).execute()
        notification = res.data[0] if res.data else None
    except Exception as e:
        logger.error(f"Failed to store notification for {user_id}: {e}")
        return None

    try:
        tokens_res = (
            client.table("push_tokens")
            .select("token")
            .eq("user_id", user_id)
            .execute()
        )
        tokens = [t["token"] for t in (tokens_res.data or [])]
        send_push_messages(
            tokens,
            title,
            body,
            data={"type": str(type), "permitId": permit_id, "actionUrl": action_url},
        )
    except Exception as e:
        logger.warning(f"Push delivery failed for {user_id}: {e}")

    return notification


def notify_users(
    user_ids: Iterable[str],
    type: NotificationType,
    title: str,
    body: str,
    permit_id: Optional[str] = None,
    action_url: Optional[str] = None,
    exclude_user_id: Optional[str] = None,
) -> int:
    sent = 0
    seen = set()
    for uid in user_ids:
        if not uid or uid == exclude_user_id or uid in seen:
            continue
        seen.add(uid)
        if send_notification(uid, type, title, body, permit_id=permit_id, action_url=action_url):
            sent += 1
    return sent


def notify_permit_parties(
    permit: dict,
    actor_id: str,
    type: NotificationType,
    title: str,
    body: str,
) -> int:
    """
    Notify the permit creator and every party user except the actor.
    Returns the number of notifications stored.
    """
    try:
        user_ids = get_permit_user_ids(permit)
    except Exception as e:
        logger.error(f"Could not resolve parties for permit {permit.get('id')}: {e}")
        return 0

    return notify_users(
        user_ids,
        type,
        title,
        body,
        permit_id=permit["id"],
        action_url=permit_action_url(permit["id"]),
        exclude_user_id=actor_id,
    )


def absolute_app_url(path: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}{path}"
