# tests/test_permit_children.py

"""
Tests for milestones, inspections and parties hanging off a permit.
"""

from unittest.mock import patch

from dependencies.auth import CurrentUser


# ============================================================
# Milestones
# ============================================================
def test_milestones_get_increasing_sort_order(client, db, as_owner, permit_setup):
    first = client.post("/permits/permit-1/milestones", json={"title": "Plans"}).json()["data"]
    second = client.post("/permits/permit-1/milestones", json={"title": "Submit"}).json()["data"]

    assert (first["sort_order"], second["sort_order"]) == (0, 1)
    assert first["status"] == "PENDING"

    listed = client.get("/permits/permit-1/milestones").json()["data"]
    assert [m["title"] for m in listed] == ["Plans", "Submit"]


def test_completing_milestone_notifies(client, db, as_owner, permit_setup, contractor_user):
    milestone = db.seed("permit_milestones", {"permit_id": "permit-1", "title": "Plans", "status": "PENDING"})

    data = client.patch(f"/permits/permit-1/milestones/{milestone['id']}", json={"status": "COMPLETED"}).json()["data"]

    assert data["completed_at"]
    assert db.rows("notifications", user_id=contractor_user.id)[0]["title"] == "Milestone Completed"
    assert db.rows("activity_logs", action="MILESTONE_COMPLETED")


def test_reopening_milestone_clears_completed_at(client, db, as_owner, permit_setup):
    milestone = db.seed("permit_milestones", {
        "permit_id": "permit-1", "title": "Plans", "status": "COMPLETED", "completed_at": "2026-01-05T00:00:00+00:00",
    })

    data = client.patch(f"/permits/permit-1/milestones/{milestone['id']}", json={"status": "IN_PROGRESS"}).json()["data"]

    assert data["completed_at"] is None


def test_contractor_cannot_add_milestone(client, db, login, contractor_user, permit_setup):
    login(contractor_user)
    assert client.post("/permits/permit-1/milestones", json={"title": "Plans"}).status_code == 403


def test_milestone_on_other_permit_is_404(client, db, as_owner, permit_setup):
    other = db.seed("permit_milestones", {"permit_id": "permit-2", "title": "Elsewhere"})
    assert client.delete(f"/permits/permit-1/milestones/{other['id']}").status_code == 404


# ============================================================
# Inspections
# ============================================================
def test_inspection_status_follows_date(client, db, as_owner, permit_setup):
    unscheduled = client.post("/permits/permit-1/inspections", json={"type": "FOOTING"}).json()["data"]
    scheduled = client.post(
        "/permits/permit-1/inspections", json={"type": "FRAMING", "scheduled_date": "2026-04-02T09:00:00"}
    ).json()["data"]

    assert unscheduled["status"] == "NOT_SCHEDULED"
    assert scheduled["status"] == "SCHEDULED"

    bodies = [n["body"] for n in db.rows("notifications", user_id="user-contractor")]
    assert "FRAMING inspection for 2026-04-02 on Kitchen Renovation" in bodies

    dated = client.patch(
        f"/permits/permit-1/inspections/{unscheduled['id']}", json={"scheduled_date": "2026-04-01"}
    ).json()["data"]
    assert dated["status"] == "SCHEDULED"


def test_recording_result(client, db, as_owner, permit_setup, contractor_user):
    inspection = db.seed("inspections", {"permit_id": "permit-1", "type": "FOOTING", "status": "SCHEDULED"})

    data = client.patch(
        f"/permits/permit-1/inspections/{inspection['id']}", json={"status": "FAILED", "result": "Rebar spacing"}
    ).json()["data"]

    assert data["completed_date"]
    assert db.rows("notifications", user_id=contractor_user.id)[0]["title"] == "Inspection Failed"


def test_inspector_party_can_manage_inspections(client, db, login, permit_setup):
    db.seed("permit_parties", {"permit_id": "permit-1", "user_id": "user-inspector", "role": "INSPECTOR"})
    login(CurrentUser(id="user-inspector", email="inspector@example.com"))

    assert client.post("/permits/permit-1/inspections", json={"type": "FINAL"}).status_code == 201


# ============================================================
# Parties
# ============================================================
def test_add_user_party(client, db, as_owner, permit_setup):
    db.seed("users", {"id": "user-arch", "email": "arch@example.com", "name": "Ada Architect"})

    with patch("services.email_triggers.send_email") as send_email:
        response = client.post("/permits/permit-1/parties", json={"role": "ARCHITECT", "user_id": "user-arch"})

    assert response.status_code == 201
    assert response.json()["data"]["user"]["name"] == "Ada Architect"
    assert db.rows("notifications", user_id="user-arch")[0]["title"] == "Added to Permit"
    assert send_email.call_args.kwargs["to"] == "arch@example.com"


def test_add_duplicate_user_party(client, db, as_owner, permit_setup, contractor_user):
    response = client.post("/permits/permit-1/parties", json={"role": "VIEWER", "user_id": contractor_user.id})
    assert response.status_code == 400
    assert response.json()["detail"] == "User is already a party on this permit"


def test_add_contact_party(client, db, as_owner, permit_setup):
    response = client.post("/permits/permit-1/parties", json={
        "role": "CITY_CONTACT",
        "contact": {"name": "Clara Clerk", "email": "clerk@princeton.gov"},
    })

    party = response.json()["data"]
    assert party["contact"]["name"] == "Clara Clerk"
    assert db.rows("contacts")[0]["contact_type"] == "CITY_CONTACT"


def test_party_needs_user_or_contact(client, db, as_owner, permit_setup):
    response = client.post("/permits/permit-1/parties", json={"role": "VIEWER"})
    assert response.status_code == 400
    assert "Either user_id or contact is required" in response.json()["detail"]


def test_update_and_remove_party(client, db, as_owner, permit_setup, contractor_user):
    updated = client.patch("/permits/permit-1/parties/party-1", json={"role": "EXPEDITOR"}).json()["data"]
    assert updated["role"] == "EXPEDITOR"

    assert client.delete("/permits/permit-1/parties/party-1").json()["data"] == {"deleted": True}
    assert db.rows("permit_parties") == []
    assert db.rows("notifications", user_id=contractor_user.id)[0]["title"] == "Removed from Permit"


def test_contractor_cannot_manage_parties(client, db, login, contractor_user, permit_setup):
    login(contractor_user)
    assert client.delete("/permits/permit-1/parties/party-1").status_code == 403
