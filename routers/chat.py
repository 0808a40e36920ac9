# routers/chat.py

from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi.responses import StreamingResponse
from typing import Optional

from dependencies.auth import get_current_user, CurrentUser
from core.config import settings
from core.rate_limiter import require_rate_limit
from core.supabase_client import get_supabase_client
from core.supabase_helpers import fetch_one, group_by
from core.errors import handle_supabase_error, not_found, forbidden
from core.logging_config import get_logger
from core.utils import page_range, pagination_meta, utc_now_iso

from models.chat import ConversationCreate, ConversationUpdate, ChatMessageCreate
from services.ai_chat import build_system_prompt, stream_chat_response
from services.rag import build_rag_context


log = get_logger("chat")

CREDIT_UPDATE_ATTEMPTS = 3

router = APIRouter(
    prefix="/chat",
    tags=["AI Chat"],
)


# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def _get_own_conversation(conversation_id: str, user: CurrentUser) -> dict:
    conversation = fetch_one("chat_conversations", id=conversation_id)
    if not conversation:
        raise not_found("Conversation")
    if conversation.get("user_id") != user.id:
        raise forbidden("Not your conversation")
    return conversation


def conversation_property_id(conversation: dict) -> Optional[str]:
    return (conversation.get("context") or {}).get("propertyId")


def consume_ai_credit(user_id: str) -> Optional[int]:
    """
    Take one AI credit from the user's subscription.

    The write only lands while the balance still holds the value just read,
    so two concurrent sends cannot both spend the last credit. Returns the
    credits left, or None when the user has no subscription row.
    """
    client = get_supabase_client()
    for _ in range(CREDIT_UPDATE_ATTEMPTS):
        sub_res = (
            client.table("subscriptions")
            .select("id, ai_credits_remaining")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not sub_res.data:
            return None

        subscription = sub_res.data[0]
        current = subscription.get("ai_credits_remaining") or 0
        if current <= 0:
            raise HTTPException(402, "AI credits exhausted. Please upgrade your plan.")

        updated = (
            client.table("subscriptions")
            .update({"ai_credits_remaining": current - 1})
            .eq("id", subscription["id"])
            .eq("ai_credits_remaining", current)
            .execute()
        )
        if updated.data:
            return current - 1

        log.info(f"AI credit balance changed for user {user_id}, re-reading")

    raise HTTPException(409, "AI credits changed while sending. Please try again.")


def _property_state(property_id: Optional[str]) -> Optional[str]:
    """State of the property's jurisdiction, used to scope knowledge search."""
    if not property_id:
        return None
    prop = fetch_one("properties", id=property_id)
    if not prop:
        return None
    if prop.get("jurisdiction_id"):
        jurisdiction = fetch_one("jurisdictions", id=prop["jurisdiction_id"])
        if jurisdiction and jurisdiction.get("state"):
            return jurisdiction["state"]
    return prop.get("state")


# ============================================================
# CONVERSATIONS
# ============================================================
@router.get(
    "/conversations",
    summary="List my conversations",
    description="Newest first, with the last message and message count of each.",
)
def list_conversations(
    property_id: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        conversations = (
            client.table("chat_conversations")
            .select("*")
            .eq("user_id", current_user.id)
            .order("updated_at", desc=True)
            .execute()
        ).data or []

        # context is JSON; filter here rather than in the query
        if property_id:
            conversations = [c for c in conversations if conversation_property_id(c) == property_id]

        ids = [c["id"] for c in conversations]
        messages = []
        if ids:
            messages = (
                client.table("chat_messages")
                .select("*")
                .in_("conversation_id", ids)
                .order("created_at")
                .execute()
            ).data or []
        by_conversation = group_by(messages, "conversation_id")

        data = []
        for c in conversations:
            thread = by_conversation.get(c["id"], [])
            data.append({
                **c,
                "last_message": thread[-1] if thread else None,
                "message_count": len(thread),
            })

        return {"success": True, "data": data}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch conversations", 500)


@router.post("/conversations", status_code=201, summary="Start a conversation")
def create_conversation(payload: ConversationCreate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        context = {}
        if payload.property_id:
            prop = fetch_one("properties", id=payload.property_id, owner_id=current_user.id)
            if not prop:
                raise HTTPException(400, "Property not found or access denied")
            context["propertyId"] = payload.property_id
        if payload.permit_id:
            context["permitId"] = payload.permit_id

        title = payload.title or ("Property Chat" if payload.property_id else "General Chat")
        now = utc_now_iso()

        res = client.table("chat_conversations").insert({
            "user_id": current_user.id,
            "title": title,
            "context": context or None,
            "created_at": now,
            "updated_at": now,
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        return {"success": True, "data": res.data[0]}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create conversation", 500)


@router.get("/conversations/{conversation_id}", summary="Get a conversation")
def get_conversation(conversation_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        conversation = _get_own_conversation(conversation_id, current_user)
        messages = (
            client.table("chat_messages")
            .select("*")
            .eq("conversation_id", conversation_id)
            .order("created_at")
            .execute()
        ).data or []
        return {"success": True, "data": {**conversation, "messages": messages}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch conversation", 500)


@router.patch("/conversations/{conversation_id}", summary="Rename a conversation")
def update_conversation(
    conversation_id: str,
    payload: ConversationUpdate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        conversation = _get_own_conversation(conversation_id, current_user)
        update_data = {"title": payload.title.strip(), "updated_at": utc_now_iso()}
        res = client.table("chat_conversations").update(update_data).eq("id", conversation_id).execute()
        return {"success": True, "data": res.data[0] if res.data else {**conversation, **update_data}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update conversation", 500)


@router.delete("/conversations/{conversation_id}", summary="Delete a conversation")
def delete_conversation(conversation_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        _get_own_conversation(conversation_id, current_user)
        client.table("chat_messages").delete().eq("conversation_id", conversation_id).execute()
        client.table("chat_conversations").delete().eq("id", conversation_id).execute()
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete conversation", 500)


# ============================================================
# MESSAGES
# ============================================================
@router.get("/conversations/{conversation_id}/messages", summary="List conversation messages")
def list_chat_messages(
    conversation_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        _get_own_conversation(conversation_id, current_user)
        start, end = page_range(page, page_size)
        res = (
            client.table("chat_messages")
            .select("*", count="exact")
            .eq("conversation_id", conversation_id)
            .order("created_at")
            .range(start, end)
            .execute()
        )
        return {
            "success": True,
            "data": {
                "messages": res.data or [],
                "pagination": pagination_meta(page, page_size, res.count or 0),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch messages", 500)


@router.post(
    "/conversations/{conversation_id}/messages",
    summary="Ask the assistant",
    description="""
    Saves the user's message and streams the assistant's reply as
    `text/plain` chunks. The reply is stored once the stream finishes.

    - 402 `CREDITS_EXHAUSTED` when the plan has no AI credits left
    - 409 when concurrent sends keep changing the credit balance
    - 429 when the per-user rate limit is exceeded

    Conversations linked to a property get a system prompt built from the
    property's live permits, inspections, tasks and team, plus matching
    knowledge base excerpts.
    """,
)
def send_chat_message(
    conversation_id: str,
    payload: ChatMessageCreate,
    current_user: CurrentUser = Depends(get_current_user),
):
    content = (payload.content or "").strip()
    if not content:
        raise HTTPException(400, "Message content is required")

    require_rate_limit(
        f"chat:{current_user.id}",
        max_requests=settings.CHAT_RATE_LIMIT_PER_MINUTE,
        window_seconds=60,
    )

    if not settings.ANTHROPIC_API_KEY:
        raise HTTPException(500, "AI assistant is not configured")

    client = get_supabase_client()

    try:
        conversation = _get_own_conversation(conversation_id, current_user)

        consume_ai_credit(current_user.id)

        history = (
            client.table("chat_messages")
            .select("role, content")
            .eq("conversation_id", conversation_id)
            .order("created_at")
            .execute()
        ).data or []

        client.table("chat_messages").insert({
            "conversation_id": conversation_id,
            "role": "user",
            "content": content,
            "created_at": utc_now_iso(),
        }).execute()

        messages = [{"role": m["role"], "content": m["content"]} for m in history]
        messages.append({"role": "user", "content": content})

        property_id = conversation_property_id(conversation)
        rag_context = build_rag_context(content, _property_state(property_id))
        system_prompt = build_system_prompt(property_id, rag_context or None)

        client.table("chat_conversations").update({"updated_at": utc_now_iso()}).eq("id", conversation_id).execute()

    except Exception as e:
        raise handle_supabase_error(e, "Failed to send message", 500)

    def reply_stream():
        chunks = []
        try:
            for text in stream_chat_response(messages, system_prompt):
                chunks.append(text)
                yield text
        except Exception as e:
            log.error(f"Chat stream failed for conversation {conversation_id}: {e}")

        if not chunks:
            return
        try:
            client.table("chat_messages").insert({
                "conversation_id": conversation_id,
                "role": "assistant",
                "content": "".join(chunks),
                "model": settings.CHAT_MODEL,
                "created_at": utc_now_iso(),
            }).execute()
        except Exception as e:
            log.error(f"Failed to save assistant message for {conversation_id}: {e}")

    return StreamingResponse(reply_stream(), media_type="text/plain; charset=utf-8")
