# routers/parties.py

from fastapi import APIRouter, HTTPException, Depends
from typing import List

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import READ, MANAGE_PARTIES
from core.permission_helpers import PermitAccess, requires_permit_permission
from core.supabase_client import get_supabase_client
from core.supabase_helpers import fetch_by_ids, fetch_one, user_summaries
from core.errors import handle_supabase_error, not_found
from core.utils import sanitize, utc_now_iso

from models.enums import ActivityAction, NotificationType
from models.party import PartyCreate, PartyUpdate
from services.activity import log_activity
from services.email_triggers import trigger_party_added_email
from services.notification_service import send_notification, permit_action_url


router = APIRouter(
    prefix="/permits",
    tags=["Permit Parties"],
)


# -----------------------------------------------------
# Helper: attach user / contact details to party rows
# -----------------------------------------------------
def enrich_parties(parties: List[dict]) -> List[dict]:
    users = user_summaries(p.get("user_id") for p in parties)
    contacts = fetch_by_ids("contacts", (p.get("contact_id") for p in parties))
    return [
        {
            **p,
            "user": users.get(p.get("user_id")),
            "contact": contacts.get(p.get("contact_id")),
        }
        for p in parties
    ]


def party_display_name(party: dict) -> str:
    return (party.get("user") or {}).get("name") or (party.get("contact") or {}).get("name") or "Unknown"


def _get_party(permit_id: str, party_id: str) -> dict:
    party = fetch_one("permit_parties", id=party_id, permit_id=permit_id)
    if not party:
        raise not_found("Party")
    return enrich_parties([party])[0]


# ============================================================
# LIST PARTIES
# ============================================================
@router.get("/{permit_id}/parties", summary="List permit parties")
def list_parties(permit_id: str, access: PermitAccess = Depends(requires_permit_permission(READ))):
    client = get_supabase_client()

    try:
        parties = (
            client.table("permit_parties")
            .select("*")
            .eq("permit_id", permit_id)
            .order("added_at")
            .execute()
        ).data or []

        return {"success": True, "data": enrich_parties(parties)}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch parties", 500)


# ============================================================
# ADD PARTY
# ============================================================
@router.post(
    "/{permit_id}/parties",
    status_code=201,
    summary="Add a party to a permit",
    description="""
    Add an existing user (`user_id`) or an outside contact (`contact`)
    to the permit with a role. The added person is notified in-app
    (users only) and by email when an address is known.
    """,
)
def add_party(
    permit_id: str,
    payload: PartyCreate,
    access: PermitAccess = Depends(requires_permit_permission(MANAGE_PARTIES)),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    permit = access.permit
    role = payload.role.value

    try:
        contact_id = None

        if payload.user_id:
            existing = fetch_one("permit_parties", permit_id=permit_id, user_id=payload.user_id)
            if existing:
                raise HTTPException(400, "User is already a party on this permit")
        else:
            contact_res = client.table("contacts").insert({
                **sanitize(payload.contact.model_dump()),
                "contact_type": role,
                "created_by_id": current_user.id,
                "created_at": utc_now_iso(),
            }).execute()
            contact_id = contact_res.data[0]["id"]

        res = client.table("permit_parties").insert({
            "permit_id": permit_id,
            "role": role,
            "is_primary": payload.is_primary,
            "user_id": payload.user_id,
            "contact_id": contact_id,
            "added_at": utc_now_iso(),
        }).execute()

        party = enrich_parties(res.data)[0]
        name = party_display_name(party)

        log_activity(
            current_user.id,
            ActivityAction.PARTY_ADDED,
            "PARTY",
            party["id"],
            f"Added {name} as {role}",
            permit_id=permit_id,
            metadata={"role": role, "party_name": name},
        )

        if payload.user_id:
            send_notification(
                payload.user_id,
                NotificationType.PARTY_ADDED,
                "Added to Permit",
                f"You've been added as {role} on \"{permit['title']}\"",
                permit_id=permit_id,
                action_url=permit_action_url(permit_id),
            )

        email = (party.get("user") or {}).get("email") or (party.get("contact") or {}).get("email")
        trigger_party_added_email(permit, email, name, role, current_user.display_name)

        return {"success": True, "data": party}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to add party", 500)


# ============================================================
# UPDATE PARTY
# ============================================================
@router.patch("/{permit_id}/parties/{party_id}", summary="Update a party's role")
def update_party(
    permit_id: str,
    party_id: str,
    payload: PartyUpdate,
    access: PermitAccess = Depends(requires_permit_permission(MANAGE_PARTIES)),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    update_data = sanitize(payload.model_dump(exclude_unset=True))

    try:
        party = _get_party(permit_id, party_id)

        if update_data:
            client.table("permit_parties").update(update_data).eq("id", party_id).execute()

        role = update_data.get("role") or party.get("role")
        name = party_display_name(party)
        log_activity(
            current_user.id,
            ActivityAction.UPDATED,
            "PARTY",
            party_id,
            f"Updated {name}'s role to {role}",
            permit_id=permit_id,
            metadata={"role": role, "party_name": name},
        )

        return {"success": True, "data": _get_party(permit_id, party_id)}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update party", 500)


# ============================================================
# REMOVE PARTY
# ============================================================
@router.delete("/{permit_id}/parties/{party_id}", summary="Remove a party from a permit")
def remove_party(
    permit_id: str,
    party_id: str,
    access: PermitAccess = Depends(requires_permit_permission(MANAGE_PARTIES)),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        party = _get_party(permit_id, party_id)
        name = party_display_name(party)

        client.table("permit_parties").delete().eq("id", party_id).execute()

        log_activity(
            current_user.id,
            ActivityAction.PARTY_REMOVED,
            "PARTY",
            party_id,
            f"Removed {name} from permit",
            permit_id=permit_id,
            metadata={"party_name": name, "role": party.get("role")},
        )

        if party.get("user_id"):
            send_notification(
                party["user_id"],
                NotificationType.PARTY_REMOVED,
                "Removed from Permit",
                f"You've been removed from \"{access.permit['title']}\"",
                permit_id=permit_id,
            )

        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to remove party", 500)
