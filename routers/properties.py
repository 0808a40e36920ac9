# routers/properties.py

from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional

from dependencies.auth import get_current_user, CurrentUser
from core.config import settings
from core.supabase_client import get_supabase_client
from core.errors import handle_supabase_error, not_found
from core.utils import sanitize, or_filter_term, page_range, pagination_meta, utc_now_iso
from core.logging_config import logger

from models.property import PropertyCreate, PropertyUpdate
from routers.jurisdictions import lookup_jurisdiction
from services.permit_workflow import INACTIVE_STATUSES


router = APIRouter(
    prefix="/properties",
    tags=["Properties"],
)


# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def get_owned_property(property_id: str, user_id: str) -> dict:
    """404 unless the property exists and belongs to the user."""
    client = get_supabase_client()
    res = (
        client.table("properties")
        .select("*")
        .eq("id", property_id)
        .eq("owner_id", user_id)
        .limit(1)
        .execute()
    )
    if not res.data:
        raise not_found("Property")
    return res.data[0]


def enforce_property_limit(user_id: str):
    """
    FREE plan (or no subscription yet) allows FREE_PLAN_PROPERTY_LIMIT properties.
    """
    client = get_supabase_client()
    sub_res = client.table("subscriptions").select("plan").eq("user_id", user_id).limit(1).execute()
    plan = sub_res.data[0].get("plan") if sub_res.data else "FREE"
    if plan != "FREE":
        return

    count_res = (
        client.table("properties")
        .select("id", count="exact")
        .eq("owner_id", user_id)
        .execute()
    )
    if (count_res.count or 0) >= settings.FREE_PLAN_PROPERTY_LIMIT:
        raise HTTPException(
            400,
            "Free plan is limited to 1 property. Upgrade to Annual ($250/year) for unlimited properties.",
        )


def _jurisdiction_summaries(ids) -> dict:
    ids = [i for i in set(ids) if i]
    if not ids:
        return {}
    client = get_supabase_client()
    res = client.table("jurisdictions").select("id, name, type").in_("id", ids).execute()
    return {j["id"]: j for j in (res.data or [])}


# ============================================================
# LIST PROPERTIES
# ============================================================
@router.get(
    "",
    summary="List Properties",
    description="""
    Properties owned by the current user, most recently updated first.

    **Query Parameters:**
    - `state`: exact state filter
    - `search`: case-insensitive match on name, address or city
    - `page`, `page_size`

    Each property carries its `jurisdiction` summary and `permit_count`.
    """,
)
def list_properties(
    state: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        query = client.table("properties").select("*", count="exact").eq("owner_id", current_user.id)

        if state:
            query = query.eq("state", state.upper())
        term = or_filter_term(search)
        if term:
            query = query.or_(f"name.ilike.%{term}%,address.ilike.%{term}%,city.ilike.%{term}%")

        start, end = page_range(page, page_size)
        res = query.order("updated_at", desc=True).range(start, end).execute()
        properties = res.data or []

        jurisdictions = _jurisdiction_summaries(p.get("jurisdiction_id") for p in properties)

        permit_counts = {}
        if properties:
            permits_res = (
                client.table("permits")
                .select("id, property_id")
                .in_("property_id", [p["id"] for p in properties])
                .execute()
            )
            for row in permits_res.data or []:
                permit_counts[row["property_id"]] = permit_counts.get(row["property_id"], 0) + 1

        enriched = [
            {
                **p,
                "jurisdiction": jurisdictions.get(p.get("jurisdiction_id")),
                "permit_count": permit_counts.get(p["id"], 0),
            }
            for p in properties
        ]

        return {
            "success": True,
            "data": {
                "properties": enriched,
                "pagination": pagination_meta(page, page_size, res.count or 0),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch properties", 500)


# ============================================================
# CREATE PROPERTY
# ============================================================
@router.post("", status_code=201, summary="Create Property")
def create_property(payload: PropertyCreate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    data = sanitize(payload.model_dump())

    try:
        enforce_property_limit(current_user.id)

        jurisdiction = lookup_jurisdiction(payload.state, payload.city)

        now = utc_now_iso()
        res = client.table("properties").insert({
            **data,
            "owner_id": current_user.id,
            "jurisdiction_id": jurisdiction["id"] if jurisdiction else None,
            "created_at": now,
            "updated_at": now,
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        prop = res.data[0]
        logger.info(f"Property {prop['id']} created by {current_user.id}")

        return {
            "success": True,
            "data": {
                **prop,
                "jurisdiction": {k: jurisdiction.get(k) for k in ("id", "name", "type")} if jurisdiction else None,
                "permit_count": 0,
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create property", 500)


# ============================================================
# GET PROPERTY
# ============================================================
@router.get("/{property_id}", summary="Get Property")
def get_property(property_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        prop = get_owned_property(property_id, current_user.id)

        jurisdiction = None
        if prop.get("jurisdiction_id"):
            jur_res = (
                client.table("jurisdictions")
                .select("*")
                .eq("id", prop["jurisdiction_id"])
                .limit(1)
                .execute()
            )
            jurisdiction = jur_res.data[0] if jur_res.data else None

        permits = (
            client.table("permits")
            .select("id, title, status, subcode_type, project_type, priority, permit_number, updated_at")
            .eq("property_id", property_id)
            .order("updated_at", desc=True)
            .execute()
        ).data or []

        return {"success": True, "data": {**prop, "jurisdiction": jurisdiction, "permits": permits}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch property", 500)


# ============================================================
# UPDATE PROPERTY
# ============================================================
@router.patch("/{property_id}", summary="Update Property")
def update_property(
    property_id: str,
    payload: PropertyUpdate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    update_data = sanitize(payload.model_dump(exclude_unset=True))

    try:
        prop = get_owned_property(property_id, current_user.id)

        # City or state moved: re-match the jurisdiction
        if "city" in update_data or "state" in update_data:
            city = update_data.get("city") or prop.get("city")
            state = update_data.get("state") or prop.get("state")
            jurisdiction = lookup_jurisdiction(state, city)
            update_data["jurisdiction_id"] = jurisdiction["id"] if jurisdiction else None

        res = (
            client.table("properties")
            .update({**update_data, "updated_at": utc_now_iso()})
            .eq("id", property_id)
            .execute()
        )
        if not res.data:
            raise not_found("Property")

        return {"success": True, "data": res.data[0]}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update property", 500)


# ============================================================
# DELETE PROPERTY
# ============================================================
@router.delete("/{property_id}", summary="Delete Property")
def delete_property(property_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        get_owned_property(property_id, current_user.id)

        permits = (
            client.table("permits")
            .select("id, status")
            .eq("property_id", property_id)
            .execute()
        ).data or []

        if any(p.get("status") not in INACTIVE_STATUSES for p in permits):
            raise HTTPException(400, "Cannot delete property with active permits")

        client.table("properties").delete().eq("id", property_id).execute()
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete property", 500)
