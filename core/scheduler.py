# core/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from datetime import timedelta

from core.logging_config import get_logger
from core.supabase_client import get_supabase_client
from core.utils import utc_now
from models.enums import NotificationType
from services.email_triggers import trigger_inspection_reminder_emails
from services.notification_service import notify_users, permit_action_url
from core.permission_helpers import get_permit_user_ids


log = get_logger("scheduler")

MILESTONE_DUE_WINDOW_DAYS = 3

_scheduler = None


def _permits_by_id(permit_ids):
    client = get_supabase_client()
    res = client.table("permits").select("*").in_("id", list(set(permit_ids))).execute()
    return {p["id"]: p for p in (res.data or [])}


def run_inspection_reminders(now=None) -> int:
    """Email every party about inspections scheduled for tomorrow (UTC)."""
    now = now or utc_now()
    tomorrow = (now + timedelta(days=1)).date()
    start = tomorrow.isoformat()
    end = (tomorrow + timedelta(days=1)).isoformat()

    client = get_supabase_client()
    inspections = (
        client.table("inspections")
        .select("*")
        .eq("status", "SCHEDULED")
        .gte("scheduled_date", start)
        .lt("scheduled_date", end)
        .execute()
    ).data or []

    if not inspections:
        return 0

    permits = _permits_by_id([i["permit_id"] for i in inspections])
    sent = 0
    for inspection in inspections:
        permit = permits.get(inspection["permit_id"])
        if not permit:
            continue
        sent += trigger_inspection_reminder_emails(
            permit,
            inspection["type"],
            tomorrow.strftime("%m/%d/%Y"),
            inspection.get("inspector_name"),
        )

    log.info(f"Inspection reminders: {len(inspections)} inspections, {sent} emails")
    return sent


def run_milestone_due_notifications(now=None) -> int:
    """Notify parties about unfinished milestones due within the next few days."""
    now = now or utc_now()
    client = get_supabase_client()
    milestones = (
        client.table("permit_milestones")
        .select("*")
        .in_("status", ["PENDING", "IN_PROGRESS"])
        .gte("due_date", now.date().isoformat())
        .lte("due_date", (now + timedelta(days=MILESTONE_DUE_WINDOW_DAYS)).date().isoformat())
        .execute()
    ).data or []

    if not milestones:
        return 0

    permits = _permits_by_id([m["permit_id"] for m in milestones])
    sent = 0
    for milestone in milestones:
        permit = permits.get(milestone["permit_id"])
        if not permit:
            continue
        sent += notify_users(
            get_permit_user_ids(permit),
            NotificationType.MILESTONE_DUE,
            "Milestone Due Soon",
            f"\"{milestone['title']}\" on {permit['title']} is due {str(milestone['due_date'])[:10]}",
            permit_id=permit["id"],
            action_url=permit_action_url(permit["id"]),
        )

    log.info(f"Milestone due: {len(milestones)} milestones, {sent} notifications")
    return sent


def _run_safely(job):
    def runner():
        try:
            job()
        except Exception as e:
            log.error(f"Scheduled job {job.__name__} failed: {e}", exc_info=True)
    runner.__name__ = job.__name__
    return runner


def start_scheduler():
    """
    Initialize the APScheduler background process.
    Both jobs run once a day.
    """
    global _scheduler
    if _scheduler is not None:
        return _scheduler

    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        _run_safely(run_inspection_reminders),
        trigger=CronTrigger(hour=13, minute=0),  # 13:00 UTC = 8-9am Eastern
        id="inspection_reminders",
        replace_existing=True,
    )
    scheduler.add_job(
        _run_safely(run_milestone_due_notifications),
        trigger=CronTrigger(hour=13, minute=15),
        id="milestone_due_notifications",
        replace_existing=True,
    )

    scheduler.start()
    _scheduler = scheduler
    log.info("Scheduler started. Daily reminders set for 13:00 UTC.")
    return scheduler


def shutdown_scheduler():
    global _scheduler
    if _scheduler is None:
        return
    _scheduler.shutdown(wait=False)
    _scheduler = None
    log.info("Scheduler stopped.")
