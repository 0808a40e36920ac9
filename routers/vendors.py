# routers/vendors.py

from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional

from dependencies.auth import get_current_user, CurrentUser
from core.cache import VENDORS, cache_key, cached
from core.supabase_client import get_supabase_client
from core.supabase_helpers import fetch_one, user_summaries
from core.errors import handle_supabase_error, not_found, forbidden
from core.utils import sanitize, or_filter_term, page_range, pagination_meta, utc_now_iso

from models.enums import VendorSpecialty, SubcodeType
from models.vendor import (
    VendorProfileCreate,
    VendorProfileUpdate,
    VendorReviewCreate,
    VendorLicenseCreate,
    VendorInsuranceCreate,
    VendorPaymentCreate,
)
from services.vendor_service import recalculate_rating, record_payment


router = APIRouter(
    prefix="/vendors",
    tags=["Vendors"],
)

RECENT_REVIEWS = 10


def specialty_label(value: str) -> str:
    return value.replace("_", " ").title()


def _get_vendor(vendor_id: str) -> dict:
    vendor = fetch_one("vendor_profiles", id=vendor_id)
    if not vendor or vendor.get("is_active") is False:
        raise not_found("Vendor")
    return vendor


def _get_owned_vendor(vendor_id: str, user: CurrentUser) -> dict:
    vendor = _get_vendor(vendor_id)
    if vendor.get("user_id") != user.id:
        raise forbidden("Only the vendor can manage this profile")
    return vendor


# ============================================================
# SPECIALTIES (public)
# ============================================================
@router.get("/specialties", summary="List vendor specialties")
def list_specialties():
    data = cached(
        cache_key(VENDORS, "specialties"),
        lambda: [{"value": s.value, "label": specialty_label(s.value)} for s in VendorSpecialty],
        ttl_seconds=3600,
    )
    return {"success": True, "data": data}


# ============================================================
# SEARCH
# ============================================================
@router.get(
    "",
    summary="Search vendors",
    description="""
    Active vendor profiles, best rated first.

    **Filters:**
    - `query`: matches company name or description
    - `subcode_type`: vendors holding a license for that subcode
    - `service_area`: vendors serving the county or town
    - `is_verified`, `min_rating`
    """,
)
def list_vendors(
    query: Optional[str] = None,
    subcode_type: Optional[SubcodeType] = None,
    service_area: Optional[str] = None,
    is_verified: Optional[bool] = None,
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    page: int = Query(1, ge=1),
    page_size: int = Query(12, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        q = client.table("vendor_profiles").select("*", count="exact").eq("is_active", True)

        term = or_filter_term(query)
        if term:
            q = q.or_(f"company_name.ilike.%{term}%,description.ilike.%{term}%")
        if subcode_type:
            licensed = (
                client.table("vendor_licenses")
                .select("vendor_id")
                .eq("subcode_type", subcode_type.value)
                .execute()
            ).data or []
            vendor_ids = list({l["vendor_id"] for l in licensed})
            if not vendor_ids:
                return {
                    "success": True,
                    "data": {"vendors": [], "pagination": pagination_meta(page, page_size, 0)},
                }
            q = q.in_("id", vendor_ids)
        if service_area:
            q = q.contains("service_areas", [service_area])
        if is_verified is not None:
            q = q.eq("is_verified", is_verified)
        if min_rating is not None:
            q = q.gte("rating", min_rating)

        start, end = page_range(page, page_size)
        res = q.order("rating", desc=True).range(start, end).execute()

        return {
            "success": True,
            "data": {
                "vendors": res.data or [],
                "pagination": pagination_meta(page, page_size, res.count or 0),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to search vendors", 500)


# ============================================================
# PROFILE
# ============================================================
@router.post("", status_code=201, summary="Create my vendor profile")
def create_vendor(payload: VendorProfileCreate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    data = sanitize(payload.model_dump(mode="json"))

    try:
        if fetch_one("vendor_profiles", user_id=current_user.id):
            raise HTTPException(400, "You already have a vendor profile")

        res = client.table("vendor_profiles").insert({
            **data,
            "user_id": current_user.id,
            "rating": 0,
            "review_count": 0,
            "is_verified": False,
            "is_active": True,
            "created_at": utc_now_iso(),
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        return {"success": True, "data": res.data[0]}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create vendor profile", 500)


@router.get("/me", summary="My vendor profile")
def get_my_vendor(current_user: CurrentUser = Depends(get_current_user)):
    try:
        vendor = fetch_one("vendor_profiles", user_id=current_user.id)
        if not vendor:
            raise not_found("Vendor profile")
        return {"success": True, "data": vendor}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch vendor profile", 500)


@router.get("/{vendor_id}", summary="Get a vendor")
def get_vendor(vendor_id: str, current_user: CurrentUser = Depends(get_current_user)):
    """Profile with licenses, insurance and the most recent reviews."""
    client = get_supabase_client()

    try:
        vendor = _get_vendor(vendor_id)

        licenses = client.table("vendor_licenses").select("*").eq("vendor_id", vendor_id).execute().data or []
        insurance = client.table("vendor_insurance").select("*").eq("vendor_id", vendor_id).execute().data or []
        reviews = (
            client.table("vendor_reviews")
            .select("*")
            .eq("vendor_id", vendor_id)
            .order("created_at", desc=True)
            .limit(RECENT_REVIEWS)
            .execute()
        ).data or []
        reviewers = user_summaries(r.get("reviewer_id") for r in reviews)

        return {
            "success": True,
            "data": {
                **vendor,
                "licenses": licenses,
                "insurance": insurance,
                "reviews": [{**r, "reviewer": reviewers.get(r.get("reviewer_id"))} for r in reviews],
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch vendor", 500)


@router.patch("/{vendor_id}", summary="Update my vendor profile")
def update_vendor(
    vendor_id: str,
    payload: VendorProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    update_data = sanitize(payload.model_dump(mode="json", exclude_unset=True))

    try:
        vendor = _get_owned_vendor(vendor_id, current_user)

        res = (
            client.table("vendor_profiles")
            .update({**update_data, "updated_at": utc_now_iso()})
            .eq("id", vendor_id)
            .execute()
        )
        return {"success": True, "data": res.data[0] if res.data else {**vendor, **update_data}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update vendor profile", 500)


@router.delete("/{vendor_id}", summary="Deactivate my vendor profile")
def delete_vendor(vendor_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        _get_owned_vendor(vendor_id, current_user)
        client.table("vendor_profiles").update({
            "is_active": False,
            "updated_at": utc_now_iso(),
        }).eq("id", vendor_id).execute()
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete vendor profile", 500)


# ============================================================
# REVIEWS
# ============================================================
@router.get("/{vendor_id}/reviews", summary="List vendor reviews")
def list_reviews(
    vendor_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        _get_vendor(vendor_id)
        start, end = page_range(page, page_size)
        res = (
            client.table("vendor_reviews")
            .select("*", count="exact")
            .eq("vendor_id", vendor_id)
            .order("created_at", desc=True)
            .range(start, end)
            .execute()
        )
        reviews = res.data or []
        reviewers = user_summaries(r.get("reviewer_id") for r in reviews)

        return {
            "success": True,
            "data": {
                "reviews": [{**r, "reviewer": reviewers.get(r.get("reviewer_id"))} for r in reviews],
                "pagination": pagination_meta(page, page_size, res.count or 0),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch reviews", 500)


@router.post("/{vendor_id}/reviews", status_code=201, summary="Review a vendor")
def create_review(
    vendor_id: str,
    payload: VendorReviewCreate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        vendor = _get_vendor(vendor_id)

        if vendor.get("user_id") == current_user.id:
            raise HTTPException(400, "You cannot review your own vendor profile")
        if fetch_one("vendor_reviews", vendor_id=vendor_id, reviewer_id=current_user.id):
            raise HTTPException(400, "You have already reviewed this vendor")

        res = client.table("vendor_reviews").insert({
            **sanitize(payload.model_dump()),
            "vendor_id": vendor_id,
            "reviewer_id": current_user.id,
            "created_at": utc_now_iso(),
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        rating = recalculate_rating(vendor_id)

        return {"success": True, "data": {**res.data[0], "vendor_rating": rating}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create review", 500)


# ============================================================
# LICENSES & INSURANCE
# ============================================================
@router.post("/{vendor_id}/licenses", status_code=201, summary="Add a license")
def add_license(
    vendor_id: str,
    payload: VendorLicenseCreate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        _get_owned_vendor(vendor_id, current_user)
        res = client.table("vendor_licenses").insert({
            **sanitize(payload.model_dump(mode="json")),
            "vendor_id": vendor_id,
            "created_at": utc_now_iso(),
        }).execute()
        return {"success": True, "data": res.data[0]}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to add license", 500)


@router.delete("/{vendor_id}/licenses/{license_id}", summary="Remove a license")
def delete_license(vendor_id: str, license_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        _get_owned_vendor(vendor_id, current_user)
        if not fetch_one("vendor_licenses", id=license_id, vendor_id=vendor_id):
            raise not_found("License")
        client.table("vendor_licenses").delete().eq("id", license_id).execute()
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to remove license", 500)


@router.post("/{vendor_id}/insurance", status_code=201, summary="Add an insurance policy")
def add_insurance(
    vendor_id: str,
    payload: VendorInsuranceCreate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        _get_owned_vendor(vendor_id, current_user)
        res = client.table("vendor_insurance").insert({
            **sanitize(payload.model_dump(mode="json")),
            "vendor_id": vendor_id,
            "created_at": utc_now_iso(),
        }).execute()
        return {"success": True, "data": res.data[0]}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to add insurance", 500)


@router.delete("/{vendor_id}/insurance/{insurance_id}", summary="Remove an insurance policy")
def delete_insurance(vendor_id: str, insurance_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        _get_owned_vendor(vendor_id, current_user)
        if not fetch_one("vendor_insurance", id=insurance_id, vendor_id=vendor_id):
            raise not_found("Insurance policy")
        client.table("vendor_insurance").delete().eq("id", insurance_id).execute()
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to remove insurance", 500)


# ============================================================
# TRANSACTIONS
# ============================================================
@router.get("/{vendor_id}/transactions", summary="My vendor transactions")
def list_transactions(
    vendor_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        _get_owned_vendor(vendor_id, current_user)
        start, end = page_range(page, page_size)
        res = (
            client.table("vendor_transactions")
            .select("*", count="exact")
            .eq("vendor_id", vendor_id)
            .order("created_at", desc=True)
            .range(start, end)
            .execute()
        )
        return {
            "success": True,
            "data": {
                "transactions": res.data or [],
                "pagination": pagination_meta(page, page_size, res.count or 0),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch transactions", 500)


@router.post(
    "/{vendor_id}/payments",
    status_code=201,
    summary="Pay a vendor",
    description="""
    Records a marketplace payment. The platform keeps `PLATFORM_FEE_PERCENT`
    of the amount; vendors with a connected Stripe account receive the
    rest as a transfer.
    """,
)
def pay_vendor(
    vendor_id: str,
    payload: VendorPaymentCreate,
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        vendor = _get_vendor(vendor_id)
        if vendor.get("user_id") == current_user.id:
            raise HTTPException(400, "You cannot pay your own vendor profile")

        transaction = record_payment(
            vendor,
            current_user.id,
            payload.amount_cents,
            description=payload.description,
            permit_id=payload.permit_id,
        )
        return {"success": True, "data": transaction}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to record payment", 500)
