# routers/permits.py

import uuid
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import READ, EDIT
from core.permission_helpers import PermitAccess, requires_permit_permission, fetch_permit
from core.supabase_client import get_supabase_client
from core.supabase_helpers import fetch_by_ids, fetch_one, user_summaries
from core.errors import handle_supabase_error, not_found
from core.utils import sanitize, or_filter_term, page_range, pagination_meta, parse_datetime, utc_now, utc_now_iso
from core.logging_config import logger

from models.enums import ActivityAction, NotificationType, PermitStatus, SubcodeType, Priority
from models.permit import PermitCreate, PermitUpdate, PermitStatusUpdate
from routers.parties import enrich_parties
from services.activity import log_activity
from services.email_triggers import trigger_status_change_emails
from services.notification_service import notify_permit_parties
from services.permit_workflow import (
    DELETABLE_STATUSES,
    InvalidTransition,
    status_label,
    status_side_effects,
    transition_options,
    validate_transition,
)


router = APIRouter(
    prefix="/permits",
    tags=["Permits"],
)

PROPERTY_SUMMARY_FIELDS = ("id", "name", "address", "city", "state")


# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def generate_internal_ref() -> str:
    """Short human-friendly reference, e.g. PRM-3F9A1C2B."""
    return f"PRM-{uuid.uuid4().hex[:8].upper()}"


def _property_summary(prop: Optional[dict]) -> Optional[dict]:
    if not prop:
        return None
    return {k: prop.get(k) for k in PROPERTY_SUMMARY_FIELDS}


def apply_status_change(
    permit: dict,
    new_status: str,
    current_user: CurrentUser,
    note: Optional[str] = None,
    extra_updates: Optional[dict] = None,
) -> dict:
    """
    Validate and persist a status transition with its timestamp side
    effects, then log, notify and email. Raises HTTPException 400 for a
    transition the status machine does not allow.
    """
    old_status = permit["status"]
    try:
        validate_transition(old_status, new_status)
    except InvalidTransition as e:
        raise HTTPException(400, str(e))

    now = utc_now()
    update = {
        **(extra_updates or {}),
        "status": new_status,
        **status_side_effects(permit, new_status, now=now),
        "updated_at": now.isoformat(),
    }

    client = get_supabase_client()
    res = client.table("permits").update(update).eq("id", permit["id"]).execute()
    updated = res.data[0] if res.data else {**permit, **update}

    log_activity(
        current_user.id,
        ActivityAction.STATUS_CHANGED,
        "PERMIT",
        permit["id"],
        f"Status changed from {old_status} to {new_status}",
        permit_id=permit["id"],
        metadata={"old_status": old_status, "new_status": new_status, "note": note},
    )

    label = status_label(new_status)
    notify_permit_parties(
        updated,
        current_user.id,
        NotificationType.STATUS_CHANGED,
        "Permit Status Updated",
        f"{updated['title']} is now {label}",
    )
    trigger_status_change_emails(updated, current_user.id, current_user.display_name, old_status, new_status)

    logger.info(f"Permit {permit['id']} moved {old_status} → {new_status} by {current_user.id}")
    return updated


# ============================================================
# LIST PERMITS
# ============================================================
@router.get(
    "",
    summary="List Permits",
    description="""
    Permits created by the current user, most recently updated first.

    **Query Parameters:**
    - `status`, `subcode_type`, `property_id`, `priority`: exact filters
    - `search`: case-insensitive match on title, permit number or description
    - `page`, `page_size`

    Each permit carries a `property` summary.
    """,
)
def list_permits(
    status: Optional[PermitStatus] = None,
    subcode_type: Optional[SubcodeType] = None,
    property_id: Optional[str] = None,
    priority: Optional[Priority] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        query = client.table("permits").select("*", count="exact").eq("creator_id", current_user.id)

        if status:
            query = query.eq("status", status.value)
        if subcode_type:
            query = query.eq("subcode_type", subcode_type.value)
        if property_id:
            query = query.eq("property_id", property_id)
        if priority:
            query = query.eq("priority", priority.value)
        term = or_filter_term(search)
        if term:
            query = query.or_(
                f"title.ilike.%{term}%,permit_number.ilike.%{term}%,description.ilike.%{term}%"
            )

        start, end = page_range(page, page_size)
        res = query.order("updated_at", desc=True).range(start, end).execute()
        permits = res.data or []

        properties = fetch_by_ids("properties", (p.get("property_id") for p in permits))

        return {
            "success": True,
            "data": {
                "permits": [
                    {**p, "property": _property_summary(properties.get(p.get("property_id")))}
                    for p in permits
                ],
                "pagination": pagination_meta(page, page_size, res.count or 0),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch permits", 500)


# ============================================================
# CREATE PERMIT
# ============================================================
@router.post("", status_code=201, summary="Create Permit")
def create_permit(payload: PermitCreate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    data = sanitize(payload.model_dump())

    try:
        prop = fetch_one("properties", id=payload.property_id, owner_id=current_user.id)
        if not prop:
            raise HTTPException(400, "Property not found or access denied")

        now = utc_now_iso()
        res = client.table("permits").insert({
            **data,
            "status": PermitStatus.DRAFT.value,
            "internal_ref": generate_internal_ref(),
            "creator_id": current_user.id,
            "jurisdiction_id": prop.get("jurisdiction_id"),
            "created_at": now,
            "updated_at": now,
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        permit = res.data[0]

        log_activity(
            current_user.id,
            ActivityAction.CREATED,
            "PERMIT",
            permit["id"],
            f"Created permit \"{permit['title']}\" for {prop.get('name')}",
            permit_id=permit["id"],
        )

        return {"success": True, "data": {**permit, "property": _property_summary(prop)}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create permit", 500)


# ============================================================
# GET PERMIT
# ============================================================
@router.get("/{permit_id}", summary="Get Permit")
def get_permit(permit_id: str, access: PermitAccess = Depends(requires_permit_permission(READ))):
    """
    Permit with property, jurisdiction, milestones, inspections, parties
    and the caller's role / permissions on it.
    """
    client = get_supabase_client()
    permit = access.permit

    try:
        prop = fetch_one("properties", id=permit["property_id"]) if permit.get("property_id") else None
        jurisdiction = fetch_one("jurisdictions", id=permit["jurisdiction_id"]) if permit.get("jurisdiction_id") else None

        milestones = (
            client.table("permit_milestones")
            .select("*")
            .eq("permit_id", permit_id)
            .order("sort_order")
            .execute()
        ).data or []

        inspections = (
            client.table("inspections")
            .select("*")
            .eq("permit_id", permit_id)
            .order("scheduled_date")
            .execute()
        ).data or []

        parties = (
            client.table("permit_parties")
            .select("*")
            .eq("permit_id", permit_id)
            .order("added_at")
            .execute()
        ).data or []

        return {
            "success": True,
            "data": {
                **permit,
                "status_label": status_label(permit.get("status")),
                "property": prop,
                "jurisdiction": jurisdiction,
                "milestones": milestones,
                "inspections": inspections,
                "parties": enrich_parties(parties),
                "access": access.to_dict(),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch permit", 500)


# ============================================================
# UPDATE PERMIT
# ============================================================
@router.patch("/{permit_id}", summary="Update Permit")
def update_permit(
    permit_id: str,
    payload: PermitUpdate,
    access: PermitAccess = Depends(requires_permit_permission(EDIT)),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Partial update. A `status` here goes through the same transition
    rules as PATCH /permits/{id}/status.
    """
    client = get_supabase_client()
    permit = access.permit
    update_data = sanitize(payload.model_dump(exclude_unset=True))
    new_status = update_data.pop("status", None)

    try:
        if new_status and new_status != permit["status"]:
            updated = apply_status_change(permit, new_status, current_user, extra_updates=update_data)
            return {"success": True, "data": updated}

        res = (
            client.table("permits")
            .update({**update_data, "updated_at": utc_now_iso()})
            .eq("id", permit_id)
            .execute()
        )
        updated = res.data[0] if res.data else permit

        log_activity(
            current_user.id,
            ActivityAction.UPDATED,
            "PERMIT",
            permit_id,
            f"Updated permit \"{updated['title']}\"",
            permit_id=permit_id,
            metadata={"fields": sorted(update_data.keys())},
        )

        return {"success": True, "data": updated}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update permit", 500)


# ============================================================
# DELETE PERMIT
# ============================================================
@router.delete("/{permit_id}", summary="Delete Permit")
def delete_permit(permit_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        permit = fetch_permit(permit_id)
        if not permit:
            raise not_found("Permit")

        if permit.get("creator_id") != current_user.id:
            raise HTTPException(403, "Only the permit creator can delete it")

        if permit.get("status") not in DELETABLE_STATUSES:
            raise HTTPException(400, "Can only delete permits in Draft, Denied, Closed, or Expired status")

        client.table("permits").delete().eq("id", permit_id).execute()
        logger.info(f"Permit {permit_id} deleted by {current_user.id}")

        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete permit", 500)


# ============================================================
# STATUS
# ============================================================
@router.patch(
    "/{permit_id}/status",
    summary="Change permit status",
    description="""
    Move the permit to the next status. Only transitions allowed from
    the current status are accepted (see `GET /permits/{id}/transitions`).

    Sets `submitted_at`, `approved_at`, `issued_at` / `expires_at` or
    `closed_at` as appropriate, logs the change, notifies every party
    and emails them.
    """,
)
def update_status(
    permit_id: str,
    payload: PermitStatusUpdate,
    access: PermitAccess = Depends(requires_permit_permission(EDIT)),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        updated = apply_status_change(access.permit, payload.status.value, current_user, note=payload.note)
        return {"success": True, "data": updated}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update permit status", 500)


@router.get("/{permit_id}/transitions", summary="Allowed next statuses")
def get_transitions(permit_id: str, access: PermitAccess = Depends(requires_permit_permission(READ))):
    current = access.permit["status"]
    return {
        "success": True,
        "data": {
            "current": {"status": current, "label": status_label(current)},
            "transitions": transition_options(current),
            "can_edit": access.can(EDIT),
        },
    }


# ============================================================
# TIMELINE
# ============================================================
def _event_date(*values) -> Optional[str]:
    for v in values:
        if v:
            return v
    return None


@router.get("/{permit_id}/timeline", summary="Permit timeline")
def get_timeline(permit_id: str, access: PermitAccess = Depends(requires_permit_permission(READ))):
    """Milestones, inspections, status changes, documents and photos, newest first."""
    client = get_supabase_client()

    try:
        milestones = client.table("permit_milestones").select("*").eq("permit_id", permit_id).execute().data or []
        inspections = client.table("inspections").select("*").eq("permit_id", permit_id).execute().data or []
        status_changes = (
            client.table("activity_logs")
            .select("*")
            .eq("permit_id", permit_id)
            .eq("action", ActivityAction.STATUS_CHANGED.value)
            .execute()
        ).data or []
        documents = (
            client.table("documents")
            .select("*")
            .eq("permit_id", permit_id)
            .eq("is_archived", False)
            .execute()
        ).data or []
        photos = client.table("permit_photos").select("*").eq("permit_id", permit_id).execute().data or []

        events = []

        for m in milestones:
            events.append({
                "id": f"milestone-{m['id']}",
                "type": "milestone",
                "title": m["title"],
                "description": m.get("description"),
                "status": m.get("status"),
                "date": _event_date(m.get("completed_at"), m.get("due_date"), m.get("created_at")),
                "metadata": {"milestone_id": m["id"]},
            })

        for i in inspections:
            events.append({
                "id": f"inspection-{i['id']}",
                "type": "inspection",
                "title": f"{i['type']} Inspection",
                "description": i.get("notes"),
                "status": i.get("status"),
                "date": _event_date(i.get("completed_date"), i.get("scheduled_date"), i.get("created_at")),
                "metadata": {
                    "inspection_id": i["id"],
                    "inspector_name": i.get("inspector_name"),
                    "result": i.get("result"),
                },
            })

        for a in status_changes:
            events.append({
                "id": f"status-{a['id']}",
                "type": "status_change",
                "title": a.get("description"),
                "description": (a.get("metadata") or {}).get("note"),
                "status": (a.get("metadata") or {}).get("new_status"),
                "date": a.get("created_at"),
                "metadata": a.get("metadata"),
            })

        for d in documents:
            events.append({
                "id": f"doc-{d['id']}",
                "type": "document",
                "title": f"Document uploaded: {d['title']}",
                "description": d.get("description"),
                "status": d.get("category"),
                "date": d.get("created_at"),
                "metadata": {"document_id": d["id"]},
            })

        for p in photos:
            events.append({
                "id": f"photo-{p['id']}",
                "type": "photo",
                "title": p.get("caption") or "Photo uploaded",
                "description": None,
                "status": p.get("stage"),
                "date": p.get("created_at"),
                "metadata": {"file_url": p.get("file_url")},
            })

        events = [e for e in events if e["date"]]
        events.sort(key=lambda e: parse_datetime(e["date"]), reverse=True)

        return {"success": True, "data": events}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to build timeline", 500)


# ============================================================
# ACTIVITY
# ============================================================
@router.get("/{permit_id}/activity", summary="Permit activity log")
def get_activity(
    permit_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(30, ge=1, le=100),
    access: PermitAccess = Depends(requires_permit_permission(READ)),
):
    client = get_supabase_client()

    try:
        start, end = page_range(page, page_size)
        res = (
            client.table("activity_logs")
            .select("*", count="exact")
            .eq("permit_id", permit_id)
            .order("created_at", desc=True)
            .range(start, end)
            .execute()
        )
        activities = res.data or []
        users = user_summaries(a.get("user_id") for a in activities)

        return {
            "success": True,
            "data": {
                "activities": [{**a, "user": users.get(a.get("user_id"))} for a in activities],
                "pagination": pagination_meta(page, page_size, res.count or 0),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch activity", 500)
