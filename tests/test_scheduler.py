# tests/test_scheduler.py

"""
Tests for the scheduled reminder jobs. The jobs run against the fake
Supabase client directly; no scheduler thread is started.
"""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from core import scheduler


NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def team(db, owner_user, permit_setup):
    db.seed("users", {"id": owner_user.id, "email": owner_user.email, "name": owner_user.name})
    return permit_setup


def test_inspection_reminders_email_the_team(db, team):
    db.seed(
        "inspections",
        {"permit_id": "permit-1", "type": "FINAL_BUILDING", "status": "SCHEDULED", "scheduled_date": "2026-03-02T10:00:00+00:00", "inspector_name": "J. Smith"},
        {"permit_id": "permit-1", "type": "FOOTING", "status": "SCHEDULED", "scheduled_date": "2026-03-05T10:00:00+00:00"},
        {"permit_id": "permit-1", "type": "FRAMING", "status": "PASSED", "scheduled_date": "2026-03-02T08:00:00+00:00"},
    )

    with patch("services.email_triggers.send_email") as send_email:
        sent = scheduler.run_inspection_reminders(now=NOW)

    assert sent == 2
    recipients = sorted(call.kwargs["to"] for call in send_email.call_args_list)
    assert recipients == ["contractor@example.com", "owner@example.com"]
    body = send_email.call_args_list[0].kwargs["body"]
    assert "FINAL BUILDING inspection" in body
    assert "03/02/2026" in body
    assert "Inspector: J. Smith" in body


def test_no_inspections_tomorrow(db, team):
    with patch("services.email_triggers.send_email") as send_email:
        assert scheduler.run_inspection_reminders(now=NOW) == 0
    send_email.assert_not_called()


def test_milestone_due_notifications(db, team):
    db.seed(
        "permit_milestones",
        {"permit_id": "permit-1", "title": "Submit plans", "status": "PENDING", "due_date": "2026-03-03"},
        {"permit_id": "permit-1", "title": "Far away", "status": "PENDING", "due_date": "2026-04-01"},
        {"permit_id": "permit-1", "title": "Done already", "status": "COMPLETED", "due_date": "2026-03-02"},
    )

    sent = scheduler.run_milestone_due_notifications(now=NOW)

    assert sent == 2
    notifications = db.rows("notifications")
    assert {n["user_id"] for n in notifications} == {"user-owner", "user-contractor"}
    assert notifications[0]["type"] == "MILESTONE_DUE"
    assert notifications[0]["body"] == '"Submit plans" on Kitchen Renovation is due 2026-03-03'


def test_failing_job_is_logged_not_raised():
    def broken_job():
        raise RuntimeError("db down")

    runner = scheduler._run_safely(broken_job)
    with patch.object(scheduler.log, "error") as log_error:
        runner()

    assert runner.__name__ == "broken_job"
    log_error.assert_called_once()


def test_scheduler_start_and_shutdown():
    started = scheduler.start_scheduler()
    try:
        assert scheduler.start_scheduler() is started
        assert {job.id for job in started.get_jobs()} >= {"inspection_reminders", "milestone_due_notifications"}
    finally:
        scheduler.shutdown_scheduler()
    assert scheduler._scheduler is None
