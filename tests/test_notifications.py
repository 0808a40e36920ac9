# tests/test_notifications.py

"""
Tests for the notification inbox, push tokens and delivery.
"""

from services.notification_service import send_notification, notify_users


def seed_inbox(db, user_id):
    return db.seed(
        "notifications",
        {"id": "n-old", "user_id": user_id, "title": "Old", "is_read": True, "created_at": "2026-01-01T00:00:00+00:00"},
        {"id": "n-new", "user_id": user_id, "title": "New", "is_read": False, "created_at": "2026-01-03T00:00:00+00:00"},
        {"id": "n-mid", "user_id": user_id, "title": "Mid", "is_read": False, "created_at": "2026-01-02T00:00:00+00:00"},
        {"id": "n-other", "user_id": "someone-else", "title": "Not mine", "is_read": False},
    )


def test_inbox_newest_first_with_unread_count(client, db, as_owner):
    seed_inbox(db, as_owner.id)

    data = client.get("/notifications").json()["data"]

    assert [n["title"] for n in data["notifications"]] == ["New", "Mid", "Old"]
    assert data["unread_count"] == 2

    unread = client.get("/notifications", params={"unread_only": True, "page_size": 1}).json()["data"]
    assert [n["title"] for n in unread["notifications"]] == ["New"]
    assert unread["pagination"]["total"] == 2
    assert unread["unread_count"] == 2


def test_mark_read_and_unread(client, db, as_owner):
    seed_inbox(db, as_owner.id)

    read = client.patch("/notifications/n-new", json={"is_read": True}).json()["data"]
    assert read["is_read"] is True and read["read_at"]

    unread = client.patch("/notifications/n-new", json={"is_read": False}).json()["data"]
    assert unread["read_at"] is None


def test_cannot_touch_others_notifications(client, db, as_owner):
    seed_inbox(db, as_owner.id)
    assert client.patch("/notifications/n-other", json={"is_read": True}).status_code == 404
    assert client.delete("/notifications/n-other").status_code == 404


def test_mark_all_read(client, db, as_owner):
    seed_inbox(db, as_owner.id)

    assert client.post("/notifications/mark-all-read").json()["data"] == {"updated": 2}
    assert db.rows("notifications", id="n-other")[0]["is_read"] is False


def test_delete_notification(client, db, as_owner):
    seed_inbox(db, as_owner.id)
    client.delete("/notifications/n-old")
    assert db.rows("notifications", id="n-old") == []


def test_push_token_rebinds_to_latest_user(client, db, as_owner):
    db.seed("push_tokens", {"token": "ExponentPushToken[abc]", "platform": "IOS", "user_id": "someone-else"})

    response = client.post("/push-tokens", json={"token": "ExponentPushToken[abc]", "platform": "IOS"})

    assert response.status_code == 200
    tokens = db.rows("push_tokens")
    assert len(tokens) == 1
    assert tokens[0]["user_id"] == as_owner.id


def test_remove_push_token(client, db, as_owner):
    db.seed("push_tokens", {"token": "ExponentPushToken[abc]", "platform": "IOS", "user_id": as_owner.id})

    response = client.request("DELETE", "/push-tokens", json={"token": "ExponentPushToken[abc]"})

    assert response.status_code == 200
    assert db.rows("push_tokens") == []


def test_send_notification_pushes_to_expo_tokens_only(db, no_outbound_delivery):
    db.seed(
        "push_tokens",
        {"token": "ExponentPushToken[abc]", "user_id": "user-1"},
        {"token": "web-push-subscription", "user_id": "user-1"},
    )

    notification = send_notification("user-1", "NEW_MESSAGE", "New Message", "Hi", permit_id="permit-1")

    assert notification["is_read"] is False
    sent = no_outbound_delivery.push.call_args.kwargs["json"]
    assert [m["to"] for m in sent] == ["ExponentPushToken[abc]"]
    assert sent[0]["data"]["permitId"] == "permit-1"


def test_notify_users_skips_actor_and_duplicates(db):
    sent = notify_users(["a", "b", "a", None, "actor"], "NEW_MESSAGE", "T", "B", exclude_user_id="actor")

    assert sent == 2
    assert sorted(n["user_id"] for n in db.rows("notifications")) == ["a", "b"]
