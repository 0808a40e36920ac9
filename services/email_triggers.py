# services/email_triggers.py

"""
Plain-text emails sent when something happens on a permit.

Every trigger is best-effort: failures are logged and never propagate
to the request that caused them.
"""

from typing import Dict, List, Optional

from core.supabase_client import get_supabase_client
from core.notifications import send_email
from core.logging_config import logger
from core.utils import utc_now_iso
from services.notification_service import absolute_app_url, permit_action_url
from services.permit_workflow import status_label


# ============================================================
# Helpers
# ============================================================
def _users_by_id(user_ids: List[str]) -> Dict[str, dict]:
    ids = [u for u in user_ids if u]
    if not ids:
        return {}
    client = get_supabase_client()
    res = client.table("users").select("id, name, email").in_("id", ids).execute()
    return {u["id"]: u for u in (res.data or [])}


def _contacts_by_id(contact_ids: List[str]) -> Dict[str, dict]:
    ids = [c for c in contact_ids if c]
    if not ids:
        return {}
    client = get_supabase_client()
    res = client.table("contacts").select("id, name, email").in_("id", ids).execute()
    return {c["id"]: c for c in (res.data or [])}


def property_address(property_id: Optional[str]) -> str:
    if not property_id:
        return ""
    client = get_supabase_client()
    res = (
        client.table("properties")
        .select("address, city, state")
        .eq("id", property_id)
        .limit(1)
        .execute()
    )
    if not res.data:
        return ""
    p = res.data[0]
    return f"{p.get('address')}, {p.get('city')}, {p.get('state')}"


def collect_permit_recipients(permit: dict, exclude_user_id: Optional[str] = None) -> List[dict]:
    """
    Creator, party users and party contacts with an email address,
    deduplicated by email. `exclude_user_id` drops the acting user
    (contacts are never excluded).
    """
    client = get_supabase_client()
    parties = (
        client.table("permit_parties")
        .select("user_id, contact_id")
        .eq("permit_id", permit["id"])
        .execute()
    ).data or []

    users = _users_by_id([permit.get("creator_id")] + [p.get("user_id") for p in parties])
    contacts = _contacts_by_id([p.get("contact_id") for p in parties])

    recipients: List[dict] = []

    creator = users.get(permit.get("creator_id"))
    if creator and creator["id"] != exclude_user_id and creator.get("email"):
        recipients.append({"name": creator.get("name") or "User", "email": creator["email"]})

    for party in parties:
        user = users.get(party.get("user_id"))
        if user and user["id"] != exclude_user_id and user.get("email"):
            recipients.append({"name": user.get("name") or "User", "email": user["email"]})
        contact = contacts.get(party.get("contact_id"))
        if contact and contact.get("email"):
            recipients.append({"name": contact.get("name") or "Contact", "email": contact["email"]})

    seen = set()
    unique = []
    for r in recipients:
        if r["email"] in seen:
            continue
        seen.add(r["email"])
        unique.append(r)
    return unique


def _send_each(recipients: List[dict], subject: str, build_body) -> List[str]:
    sent = []
    for r in recipients:
        try:
            send_email(subject=subject, body=build_body(r), to=r["email"])
            sent.append(r["email"])
        except Exception as e:
            logger.error(f"Failed to email {r['email']}: {e}")
    return sent


# ============================================================
# Triggers
# ============================================================
def trigger_status_change_emails(permit: dict, actor_id: str, actor_name: str, old_status: str, new_status: str):
    try:
        old_label = status_label(old_status)
        new_label = status_label(new_status)
        address = property_address(permit.get("property_id"))
        recipients = collect_permit_recipients(permit, exclude_user_id=actor_id)
        if not recipients:
            return

        subject = f"Permit Update: {permit['title']} is now {new_label}"

        def body(r):
            return (
                f"Hi {r['name']},\n\n"
                f"The status of \"{permit['title']}\" ({address}) changed "
                f"from {old_label} to {new_label}.\n"
                f"Updated by: {actor_name}\n\n"
                f"View the permit: {absolute_app_url(permit_action_url(permit['id']))}\n"
            )

        sent = _send_each(recipients, subject, body)

        if sent:
            client = get_supabase_client()
            client.table("email_logs").insert([
                {
                    "to": email,
                    "subject": subject,
                    "body": f"Status changed from {old_label} to {new_label}",
                    "status": "SENT",
                    "permit_id": permit["id"],
                    "created_at": utc_now_iso(),
                }
                for email in sent
            ]).execute()
    except Exception as e:
        logger.error(f"trigger_status_change_emails error: {e}")


def trigger_party_added_email(permit: dict, party_email: Optional[str], party_name: str, role: str, added_by: str):
    if not party_email:
        return
    try:
        address = property_address(permit.get("property_id"))
        send_email(
            subject=f"You've been added to {permit['title']}",
            body=(
                f"Hi {party_name},\n\n"
                f"{added_by} added you as {role.replace('_', ' ').title()} on the permit "
                f"\"{permit['title']}\" ({address}).\n\n"
                f"View the permit: {absolute_app_url(permit_action_url(permit['id']))}\n"
            ),
            to=party_email,
        )
    except Exception as e:
        logger.error(f"trigger_party_added_email error: {e}")


def trigger_inspection_reminder_emails(
    permit: dict,
    inspection_type: str,
    inspection_date: str,
    inspector_name: Optional[str] = None,
) -> int:
    try:
        address = property_address(permit.get("property_id"))
        recipients = collect_permit_recipients(permit)
        pretty_type = inspection_type.replace("_", " ")
        subject = f"Inspection Reminder: {pretty_type} on {inspection_date}"

        def body(r):
            lines = [
                f"Hi {r['name']},",
                "",
                f"A {pretty_type} inspection for \"{permit['title']}\" ({address}) is scheduled for {inspection_date}.",
            ]
            if inspector_name:
                lines.append(f"Inspector: {inspector_name}")
            lines += ["", f"View the permit: {absolute_app_url(permit_action_url(permit['id']))}"]
            return "\n".join(lines) + "\n"

        return len(_send_each(recipients, subject, body))
    except Exception as e:
        logger.error(f"trigger_inspection_reminder_emails error: {e}")
        return 0


def trigger_photo_share_emails(
    permit: dict,
    photo: dict,
    sender_name: str,
    recipient_emails: List[str],
    message: Optional[str] = None,
) -> int:
    try:
        subject = f"{sender_name} shared a photo from {permit['title']}"
        recipients = [{"name": email, "email": email} for email in recipient_emails]

        def body(r):
            lines = [f"{sender_name} shared a photo from \"{permit['title']}\"."]
            if photo.get("caption"):
                lines.append(f"Caption: {photo['caption']}")
            if message:
                lines += ["", message]
            lines += ["", photo.get("file_url") or ""]
            return "\n".join(lines) + "\n"

        return len(_send_each(recipients, subject, body))
    except Exception as e:
        logger.error(f"trigger_photo_share_emails error: {e}")
        return 0
