# tests/test_documents.py

"""
Tests for permit documents, photos and photo sharing.
"""

from unittest.mock import patch

from dependencies.auth import CurrentUser


DOCUMENT = {
    "title": "Site plan",
    "category": "PLANS",
    "file_url": "https://files.example.com/site-plan.pdf",
    "file_name": "site-plan.pdf",
    "file_size": 2048,
}


def test_contractor_uploads_document_and_owner_is_notified(client, db, login, contractor_user, owner_user, permit_setup):
    login(contractor_user)

    response = client.post("/permits/permit-1/documents", json=DOCUMENT)

    assert response.status_code == 201
    doc = response.json()["data"]
    assert doc["uploaded_by_id"] == contractor_user.id
    assert doc["is_archived"] is False

    notification = db.rows("notifications", user_id=owner_user.id)[0]
    assert notification["title"] == "New Document"
    assert notification["body"] == 'Carl Contractor uploaded "Site plan" to Kitchen Renovation'
    assert db.rows("activity_logs", action="DOCUMENT_UPLOADED")[0]["metadata"] == {
        "category": "PLANS", "file_name": "site-plan.pdf",
    }


def test_file_size_limit(client, db, as_owner, permit_setup):
    response = client.post("/permits/permit-1/documents", json={**DOCUMENT, "file_size": 11 * 1024 * 1024})
    assert response.status_code == 400


def test_viewer_cannot_upload(client, db, login, permit_setup):
    db.seed("permit_parties", {"permit_id": "permit-1", "user_id": "user-viewer", "role": "VIEWER"})
    login(CurrentUser(id="user-viewer", email="viewer@example.com"))
    assert client.post("/permits/permit-1/documents", json=DOCUMENT).status_code == 403


def test_list_hides_archived_and_filters_category(client, db, as_owner, permit_setup):
    db.seed(
        "documents",
        {"permit_id": "permit-1", "title": "Plans v2", "category": "PLANS", "is_archived": False, "uploaded_by_id": "user-owner"},
        {"permit_id": "permit-1", "title": "Plans v1", "category": "PLANS", "is_archived": True},
        {"permit_id": "permit-1", "title": "Survey", "category": "SURVEY", "is_archived": False},
    )

    docs = client.get("/permits/permit-1/documents", params={"category": "PLANS"}).json()["data"]

    assert [d["title"] for d in docs] == ["Plans v2"]
    assert docs[0]["uploaded_by"]["name"] == "Olivia Owner"


def test_delete_archives_document(client, db, as_owner, permit_setup):
    doc = db.seed("documents", {"permit_id": "permit-1", "title": "Plans", "is_archived": False, "uploaded_by_id": "user-contractor"})

    assert client.delete(f"/documents/{doc['id']}").json()["data"] == {"deleted": True}
    assert db.rows("documents", id=doc["id"])[0]["is_archived"] is True
    assert client.delete(f"/documents/{doc['id']}").status_code == 404


def test_contractor_cannot_delete_others_document(client, db, login, contractor_user, permit_setup):
    doc = db.seed("documents", {"permit_id": "permit-1", "title": "Plans", "is_archived": False, "uploaded_by_id": "user-owner"})
    login(contractor_user)

    response = client.delete(f"/documents/{doc['id']}")

    assert response.status_code == 403
    assert response.json()["detail"] == "Only the uploader or the permit owner can delete this"


def test_uploader_deletes_own_photo_and_its_shares(client, db, login, contractor_user, permit_setup):
    login(contractor_user)
    photo = client.post("/permits/permit-1/photos", json={
        "file_url": "https://files.example.com/footing.jpg", "caption": "Footing", "stage": "FOUNDATION",
    }).json()["data"]
    db.seed("photo_shares", {"photo_id": photo["id"], "recipient_email": "x@example.com"})

    assert client.delete(f"/photos/{photo['id']}").status_code == 200
    assert db.rows("permit_photos") == []
    assert db.rows("photo_shares") == []


def test_list_photos_by_stage(client, db, as_owner, permit_setup):
    db.seed(
        "permit_photos",
        {"permit_id": "permit-1", "file_url": "a.jpg", "stage": "FOUNDATION"},
        {"permit_id": "permit-1", "file_url": "b.jpg", "stage": "FRAMING"},
    )

    photos = client.get("/permits/permit-1/photos", params={"stage": "FRAMING"}).json()["data"]
    assert [p["file_url"] for p in photos] == ["b.jpg"]


def test_share_photo(client, db, as_owner, permit_setup):
    photo = db.seed("permit_photos", {"permit_id": "permit-1", "file_url": "https://files.example.com/deck.jpg", "caption": "Deck"})

    with patch("services.email_triggers.send_email") as send_email:
        response = client.post(f"/photos/{photo['id']}/share", json={"recipients": [
            {"email": "neighbor@example.com", "name": "Nina", "message": "Look at this"},
            {"email": "lender@example.com"},
        ]})

    assert response.status_code == 200
    assert response.json()["data"]["count"] == 2
    assert send_email.call_count == 2
    assert "Look at this" in send_email.call_args_list[0].kwargs["body"]
    assert db.rows("activity_logs", action="PHOTO_SHARED")[0]["metadata"] == {
        "recipients": ["neighbor@example.com", "lender@example.com"],
    }


def test_share_needs_a_recipient(client, db, as_owner, permit_setup):
    photo = db.seed("permit_photos", {"permit_id": "permit-1", "file_url": "deck.jpg"})
    assert client.post(f"/photos/{photo['id']}/share", json={"recipients": []}).status_code == 400


def test_outsider_cannot_share(client, db, login, outsider_user, permit_setup):
    photo = db.seed("permit_photos", {"permit_id": "permit-1", "file_url": "deck.jpg"})
    login(outsider_user)
    response = client.post(f"/photos/{photo['id']}/share", json={"recipients": [{"email": "a@example.com"}]})
    assert response.status_code == 403
