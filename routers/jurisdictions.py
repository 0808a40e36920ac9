# routers/jurisdictions.py

from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional

from dependencies.auth import get_current_user, CurrentUser
from core.supabase_client import get_supabase_client
from core.errors import handle_supabase_error, not_found
from core.utils import sanitize, page_range, pagination_meta, utc_now_iso
from core.cache import JURISDICTIONS, cache_key, cached, invalidate
from core.logging_config import logger

from models.enums import JurisdictionType
from models.jurisdiction import JurisdictionCreate, JurisdictionUpdate


router = APIRouter(
    prefix="/jurisdictions",
    tags=["Jurisdictions"],
)

CACHE_TTL = 300


# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def find_state_jurisdiction(state: str) -> Optional[dict]:
    client = get_supabase_client()
    res = (
        client.table("jurisdictions")
        .select("id, name, type")
        .eq("state", state)
        .eq("type", JurisdictionType.STATE.value)
        .limit(1)
        .execute()
    )
    return res.data[0] if res.data else None


def lookup_jurisdiction(state: str, city: str) -> Optional[dict]:
    """
    Exact (case-insensitive) name match within the state first,
    then the first name containing `city`.
    """
    client = get_supabase_client()
    state = state.strip().upper()
    city = city.strip()

    exact = (
        client.table("jurisdictions")
        .select("*")
        .eq("state", state)
        .ilike("name", city)
        .limit(1)
        .execute()
    )
    if exact.data:
        return exact.data[0]

    partial = (
        client.table("jurisdictions")
        .select("*")
        .eq("state", state)
        .ilike("name", f"%{city}%")
        .order("name")
        .limit(1)
        .execute()
    )
    return partial.data[0] if partial.data else None


def _count(table: str, column: str, value: str) -> int:
    client = get_supabase_client()
    res = client.table(table).select("id", count="exact").eq(column, value).execute()
    return res.count or 0


# ============================================================
# LIST JURISDICTIONS (public)
# ============================================================
@router.get(
    "",
    summary="List Jurisdictions",
    description="""
    Public directory of permitting jurisdictions.

    **Caching:** Results are cached for 5 minutes; any write clears the cache.

    **Query Parameters:**
    - `state`, `county`, `type`, `parent_id`, `is_verified`: exact filters
    - `search`: case-insensitive match on name
    - `page`, `page_size` (max 100)
    """,
)
def list_jurisdictions(
    state: Optional[str] = None,
    county: Optional[str] = None,
    type: Optional[JurisdictionType] = None,
    parent_id: Optional[str] = None,
    is_verified: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
):
    def load():
        client = get_supabase_client()
        query = client.table("jurisdictions").select("*", count="exact")

        if state:
            query = query.eq("state", state.upper())
        if county:
            query = query.eq("county", county)
        if type:
            query = query.eq("type", type.value)
        if parent_id:
            query = query.eq("parent_id", parent_id)
        if is_verified is not None:
            query = query.eq("is_verified", is_verified)
        if search:
            query = query.ilike("name", f"%{search}%")

        start, end = page_range(page, page_size)
        res = query.order("name").range(start, end).execute()

        return {
            "success": True,
            "data": {
                "jurisdictions": res.data or [],
                "pagination": pagination_meta(page, page_size, res.count or 0),
            },
        }

    key = cache_key(JURISDICTIONS, "list", state, county, type, parent_id, is_verified, search, page, page_size)
    try:
        return cached(key, load, CACHE_TTL)

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch jurisdictions", 500)


# ============================================================
# LOOKUP BY CITY / STATE (public)
# ============================================================
@router.get("/lookup", summary="Find the jurisdiction for a city")
def lookup(
    state: str = Query(..., min_length=2, max_length=2),
    city: str = Query(..., min_length=1),
):
    key = cache_key(JURISDICTIONS, "lookup", state.upper(), city.strip().lower())
    try:
        return cached(key, lambda: {"success": True, "data": lookup_jurisdiction(state, city)}, CACHE_TTL)

    except Exception as e:
        raise handle_supabase_error(e, "Failed to look up jurisdiction", 500)


# ============================================================
# CREATE JURISDICTION
# ============================================================
@router.post("", status_code=201, summary="Create Jurisdiction")
def create_jurisdiction(payload: JurisdictionCreate, current_user: CurrentUser = Depends(get_current_user)):
    """
    Local jurisdictions without a parent are attached to their
    state-level jurisdiction when one exists.
    """
    client = get_supabase_client()
    data = sanitize(payload.model_dump(mode="json"))

    try:
        if not data.get("parent_id") and payload.type != JurisdictionType.STATE:
            parent = find_state_jurisdiction(data["state"])
            if parent:
                data["parent_id"] = parent["id"]

        now = utc_now_iso()
        res = client.table("jurisdictions").insert({
            **data,
            "is_verified": False,
            "created_at": now,
            "updated_at": now,
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        invalidate(JURISDICTIONS)
        logger.info(f"Jurisdiction {res.data[0]['id']} created by {current_user.id}")
        return {"success": True, "data": res.data[0]}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create jurisdiction", 500)


# ============================================================
# GET JURISDICTION
# ============================================================
@router.get("/{jurisdiction_id}", summary="Get Jurisdiction")
def get_jurisdiction(jurisdiction_id: str):
    client = get_supabase_client()

    try:
        res = client.table("jurisdictions").select("*").eq("id", jurisdiction_id).limit(1).execute()
        if not res.data:
            raise not_found("Jurisdiction")
        jurisdiction = res.data[0]

        parent = None
        if jurisdiction.get("parent_id"):
            parent_res = (
                client.table("jurisdictions")
                .select("id, name, type")
                .eq("id", jurisdiction["parent_id"])
                .limit(1)
                .execute()
            )
            parent = parent_res.data[0] if parent_res.data else None

        children = (
            client.table("jurisdictions")
            .select("id, name, type, state, county, is_verified")
            .eq("parent_id", jurisdiction_id)
            .order("name")
            .execute()
        ).data or []

        return {
            "success": True,
            "data": {
                **jurisdiction,
                "parent": parent,
                "children": children,
                "property_count": _count("properties", "jurisdiction_id", jurisdiction_id),
                "permit_count": _count("permits", "jurisdiction_id", jurisdiction_id),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch jurisdiction", 500)


# ============================================================
# UPDATE JURISDICTION
# ============================================================
@router.patch("/{jurisdiction_id}", summary="Update Jurisdiction")
def update_jurisdiction(
    jurisdiction_id: str,
    payload: JurisdictionUpdate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    update_data = sanitize(payload.model_dump(mode="json", exclude_unset=True))

    if update_data.get("parent_id") == jurisdiction_id:
        raise HTTPException(400, "A jurisdiction cannot be its own parent")

    try:
        res = (
            client.table("jurisdictions")
            .update({**update_data, "updated_at": utc_now_iso()})
            .eq("id", jurisdiction_id)
            .execute()
        )
        if not res.data:
            raise not_found("Jurisdiction")

        invalidate(JURISDICTIONS)
        return {"success": True, "data": res.data[0]}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update jurisdiction", 500)


# ============================================================
# DELETE JURISDICTION
# ============================================================
@router.delete("/{jurisdiction_id}", summary="Delete Jurisdiction")
def delete_jurisdiction(jurisdiction_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        res = client.table("jurisdictions").select("id").eq("id", jurisdiction_id).limit(1).execute()
        if not res.data:
            raise not_found("Jurisdiction")

        if (
            _count("properties", "jurisdiction_id", jurisdiction_id) > 0
            or _count("permits", "jurisdiction_id", jurisdiction_id) > 0
        ):
            raise HTTPException(400, "Cannot delete jurisdiction with associated properties or permits")

        client.table("jurisdictions").delete().eq("id", jurisdiction_id).execute()
        invalidate(JURISDICTIONS)

        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete jurisdiction", 500)
