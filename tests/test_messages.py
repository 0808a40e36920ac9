# tests/test_messages.py

"""
Tests for the permit message thread.
"""

from dependencies.auth import CurrentUser
from routers.messages import message_preview


def test_message_preview_truncates():
    assert message_preview("short") == "short"
    assert message_preview("x" * 120) == "x" * 100 + "..."


def test_send_message_notifies_other_parties(client, db, as_owner, permit_setup, contractor_user):
    response = client.post("/permits/permit-1/messages", json={"content": "  Inspector comes Tuesday  "})

    assert response.status_code == 201
    message = response.json()["data"]
    assert message["content"] == "Inspector comes Tuesday"
    assert message["sender"]["name"] == "Olivia Owner"

    notifications = db.rows("notifications")
    assert [n["user_id"] for n in notifications] == [contractor_user.id]
    assert notifications[0]["body"] == "Olivia Owner: Inspector comes Tuesday"


def test_blank_message_is_400(client, db, as_owner, permit_setup):
    response = client.post("/permits/permit-1/messages", json={"content": "   "})
    assert response.status_code == 400
    assert response.json()["detail"] == "Message content is required"


def test_viewer_cannot_send(client, db, login, permit_setup):
    db.seed("permit_parties", {"permit_id": "permit-1", "user_id": "user-viewer", "role": "VIEWER"})
    login(CurrentUser(id="user-viewer", email="viewer@example.com"))
    assert client.post("/permits/permit-1/messages", json={"content": "Hi"}).status_code == 403


def test_thread_is_oldest_first(client, db, as_owner, permit_setup):
    db.seed(
        "permit_messages",
        {"permit_id": "permit-1", "sender_id": "user-contractor", "content": "second", "created_at": "2026-01-02T00:00:00+00:00"},
        {"permit_id": "permit-1", "sender_id": "user-owner", "content": "first", "created_at": "2026-01-01T00:00:00+00:00"},
    )

    data = client.get("/permits/permit-1/messages").json()["data"]

    assert [m["content"] for m in data["messages"]] == ["first", "second"]
    assert data["messages"][1]["sender"]["name"] == "Carl Contractor"
    assert data["pagination"]["page_size"] == 50
