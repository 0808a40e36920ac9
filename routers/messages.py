# routers/messages.py

from fastapi import APIRouter, HTTPException, Depends, Query

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import READ, SEND_MESSAGES
from core.permission_helpers import PermitAccess, requires_permit_permission
from core.supabase_client import get_supabase_client
from core.supabase_helpers import user_summaries
from core.errors import handle_supabase_error
from core.utils import page_range, pagination_meta, utc_now_iso

from models.enums import NotificationType
from models.document import PermitMessageCreate
from services.notification_service import notify_permit_parties


router = APIRouter(
    prefix="/permits",
    tags=["Messages"],
)

PREVIEW_LENGTH = 100


def message_preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    if len(content) <= length:
        return content
    return content[:length] + "..."


# ============================================================
# LIST MESSAGES
# ============================================================
@router.get("/{permit_id}/messages", summary="List permit messages")
def list_messages(
    permit_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    access: PermitAccess = Depends(requires_permit_permission(READ)),
):
    """Oldest first, so the thread reads top to bottom."""
    client = get_supabase_client()

    try:
        start, end = page_range(page, page_size)
        res = (
            client.table("permit_messages")
            .select("*", count="exact")
            .eq("permit_id", permit_id)
            .order("created_at")
            .range(start, end)
            .execute()
        )
        messages = res.data or []
        senders = user_summaries(m.get("sender_id") for m in messages)

        return {
            "success": True,
            "data": {
                "messages": [{**m, "sender": senders.get(m.get("sender_id"))} for m in messages],
                "pagination": pagination_meta(page, page_size, res.count or 0),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch messages", 500)


# ============================================================
# SEND MESSAGE
# ============================================================
@router.post("/{permit_id}/messages", status_code=201, summary="Post a message")
def send_message(
    permit_id: str,
    payload: PermitMessageCreate,
    access: PermitAccess = Depends(requires_permit_permission(SEND_MESSAGES)),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    content = payload.content.strip()
    if not content:
        raise HTTPException(400, "Message content is required")

    try:
        res = client.table("permit_messages").insert({
            "permit_id": permit_id,
            "sender_id": current_user.id,
            "content": content,
            "created_at": utc_now_iso(),
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        message = res.data[0]

        notify_permit_parties(
            access.permit,
            current_user.id,
            NotificationType.NEW_MESSAGE,
            "New Message",
            f"{current_user.display_name}: {message_preview(content)}",
        )

        return {
            "success": True,
            "data": {
                **message,
                "sender": {"id": current_user.id, "name": current_user.name, "email": current_user.email},
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to send message", 500)
