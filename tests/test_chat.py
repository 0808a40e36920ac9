# tests/test_chat.py

"""
Tests for AI chat conversations and the streamed assistant reply.
"""

from unittest.mock import patch

import pytest

from core.config import settings
from services.ai_chat import build_property_context, build_system_prompt, GENERAL_SYSTEM_PROMPT


@pytest.fixture
def assistant(monkeypatch):
    """The Anthropic stream replaced by a canned reply."""
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "sk-ant-test")
    calls = []

    def fake_stream(messages, system_prompt):
        calls.append({"messages": messages, "system": system_prompt})
        yield "You need a "
        yield "building permit."

    with patch("routers.chat.stream_chat_response", side_effect=fake_stream), \
            patch("routers.chat.build_rag_context", return_value=""):
        yield calls


@pytest.fixture
def conversation(db, owner_user):
    return db.seed("chat_conversations", {
        "id": "conv-1",
        "user_id": owner_user.id,
        "title": "General Chat",
        "context": None,
        "created_at": "2026-01-01T00:00:00+00:00",
        "updated_at": "2026-01-01T00:00:00+00:00",
    })


def ask(client, text="Do I need a permit for a deck?", conversation_id="conv-1"):
    return client.post(f"/chat/conversations/{conversation_id}/messages", json={"content": text})


# ============================================================
# Conversations
# ============================================================
def test_create_general_conversation(client, db, as_owner):
    response = client.post("/chat/conversations", json={})
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["title"] == "General Chat"
    assert data["context"] is None


def test_create_property_conversation(client, db, as_owner, permit_setup):
    data = client.post("/chat/conversations", json={"property_id": "prop-1"}).json()["data"]
    assert data["title"] == "Property Chat"
    assert data["context"] == {"propertyId": "prop-1"}


def test_property_conversation_requires_ownership(client, db, login, contractor_user, permit_setup):
    login(contractor_user)
    response = client.post("/chat/conversations", json={"property_id": "prop-1"})
    assert response.status_code == 400


def test_list_conversations_with_last_message(client, db, as_owner, conversation):
    db.seed(
        "chat_messages",
        {"conversation_id": "conv-1", "role": "user", "content": "first", "created_at": "2026-01-01T00:01:00+00:00"},
        {"conversation_id": "conv-1", "role": "assistant", "content": "second", "created_at": "2026-01-01T00:02:00+00:00"},
    )
    data = client.get("/chat/conversations").json()["data"]
    assert len(data) == 1
    assert data[0]["message_count"] == 2
    assert data[0]["last_message"]["content"] == "second"


def test_other_users_conversation_is_forbidden(client, db, login, contractor_user, conversation):
    login(contractor_user)
    response = client.get("/chat/conversations/conv-1")
    assert response.status_code == 403
    assert response.json()["detail"] == "Not your conversation"


def test_rename_and_delete_conversation(client, db, as_owner, conversation):
    db.seed("chat_messages", {"conversation_id": "conv-1", "role": "user", "content": "hi"})

    renamed = client.patch("/chat/conversations/conv-1", json={"title": "  Deck questions "}).json()["data"]
    assert renamed["title"] == "Deck questions"

    assert client.delete("/chat/conversations/conv-1").json()["data"] == {"deleted": True}
    assert db.rows("chat_conversations") == []
    assert db.rows("chat_messages") == []


# ============================================================
# Sending messages
# ============================================================
def test_reply_is_streamed_and_saved(client, db, as_owner, conversation, assistant):
    response = ask(client)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "You need a building permit."

    saved = db.rows("chat_messages", conversation_id="conv-1")
    assert [(m["role"], m["content"]) for m in saved] == [
        ("user", "Do I need a permit for a deck?"),
        ("assistant", "You need a building permit."),
    ]
    assert saved[1]["model"] == settings.CHAT_MODEL


def test_history_is_sent_to_the_model(client, db, as_owner, conversation, assistant):
    db.seed("chat_messages", {"conversation_id": "conv-1", "role": "user", "content": "Hello", "created_at": "2026-01-01T00:01:00+00:00"})
    ask(client, "And a fence?")

    assert assistant[0]["messages"] == [
        {"role": "user", "content": "Hello"},
        {"role": "user", "content": "And a fence?"},
    ]
    assert assistant[0]["system"] == GENERAL_SYSTEM_PROMPT


def test_credits_are_decremented(client, db, as_owner, conversation, assistant):
    db.seed("subscriptions", {"id": "sub-1", "user_id": as_owner.id, "plan": "FREE", "ai_credits_remaining": 2})
    ask(client)
    assert db.rows("subscriptions")[0]["ai_credits_remaining"] == 1


def spend_credits_before_writes(db, writes):
    """Another request spends one credit right before each of the first `writes` balance updates."""
    real_table = db.table
    calls = {"subscriptions": 0}

    def table(name):
        if name == "subscriptions":
            calls["subscriptions"] += 1
            # odd calls read the balance, even calls write it
            if calls["subscriptions"] % 2 == 0 and calls["subscriptions"] // 2 <= writes:
                db.rows("subscriptions")[0]["ai_credits_remaining"] -= 1
        return real_table(name)

    return patch.object(db, "table", side_effect=table)


def test_last_credit_cannot_be_spent_twice(client, db, as_owner, conversation, assistant):
    db.seed("subscriptions", {"id": "sub-1", "user_id": as_owner.id, "plan": "FREE", "ai_credits_remaining": 1})

    with spend_credits_before_writes(db, writes=1):
        response = ask(client)

    assert response.status_code == 402
    assert db.rows("subscriptions")[0]["ai_credits_remaining"] == 0
    assert db.rows("chat_messages") == []


def test_credit_is_taken_from_the_fresh_balance(client, db, as_owner, conversation, assistant):
    db.seed("subscriptions", {"id": "sub-1", "user_id": as_owner.id, "plan": "PRO", "ai_credits_remaining": 5})

    with spend_credits_before_writes(db, writes=1):
        response = ask(client)

    assert response.status_code == 200
    assert db.rows("subscriptions")[0]["ai_credits_remaining"] == 3


def test_credit_balance_that_keeps_changing_is_409(client, db, as_owner, conversation, assistant):
    db.seed("subscriptions", {"id": "sub-1", "user_id": as_owner.id, "plan": "PRO", "ai_credits_remaining": 10})

    with spend_credits_before_writes(db, writes=10):
        response = ask(client)

    assert response.status_code == 409
    assert db.rows("subscriptions")[0]["ai_credits_remaining"] == 7
    assert db.rows("chat_messages") == []


def test_exhausted_credits_is_402(client, db, as_owner, conversation, assistant):
    db.seed("subscriptions", {"id": "sub-1", "user_id": as_owner.id, "plan": "FREE", "ai_credits_remaining": 0})

    response = ask(client)

    assert response.status_code == 402
    assert response.json() == {
        "success": False,
        "detail": "AI credits exhausted. Please upgrade your plan.",
        "code": "CREDITS_EXHAUSTED",
    }
    assert db.rows("chat_messages") == []


def test_blank_message_is_400(client, db, as_owner, conversation, assistant):
    assert ask(client, "   ").status_code == 400


def test_unconfigured_assistant_is_500(client, db, as_owner, conversation, monkeypatch):
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", None)
    assert ask(client).status_code == 500


def test_rate_limit(client, db, as_owner, conversation, assistant, monkeypatch):
    monkeypatch.setattr(settings, "CHAT_RATE_LIMIT_PER_MINUTE", 2)
    assert ask(client).status_code == 200
    assert ask(client).status_code == 200

    response = ask(client)
    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMITED"
    assert response.headers["Retry-After"] == "60"


def test_failed_stream_saves_nothing(client, db, as_owner, conversation, monkeypatch):
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "sk-ant-test")

    def broken(messages, system_prompt):
        raise RuntimeError("overloaded")
        yield  # pragma: no cover

    with patch("routers.chat.stream_chat_response", side_effect=broken), \
            patch("routers.chat.build_rag_context", return_value=""):
        response = ask(client)

    assert response.status_code == 200
    assert response.text == ""
    assert [m["role"] for m in db.rows("chat_messages")] == ["user"]


# ============================================================
# System prompt
# ============================================================
def test_property_context_lists_permits_and_team(db, permit_setup):
    db.seed("tasks", {
        "id": "task-1", "permit_id": "permit-1", "title": "Submit plans",
        "status": "TODO", "assignee_id": "user-contractor", "due_date": "2020-01-01",
    })

    context = build_property_context("prop-1")

    assert "## Property: Main Street House" in context
    assert "### Kitchen Renovation (PRM-ABCDEF12)" in context
    assert "- Tasks: 1 pending, 0 completed" in context
    assert '"Submit plans", assigned to Carl Contractor (due 01/01/2020, OVERDUE)' in context
    assert "  - CONTRACTOR: Carl Contractor <contractor@example.com>" in context


def test_property_without_permits(db):
    db.seed("properties", {"id": "prop-2", "name": "Empty Lot", "address": "1 Elm", "city": "Trenton", "state": "NJ", "zip_code": "08601"})
    assert build_property_context("prop-2").endswith("No permits yet for this property.\n")


def test_system_prompt_appends_knowledge(db):
    prompt = build_system_prompt(None, "[Source 1: UCC]\nDecks over 30 inches need a permit.")
    assert prompt.startswith(GENERAL_SYSTEM_PROMPT)
    assert "## Relevant Knowledge Base Information" in prompt
