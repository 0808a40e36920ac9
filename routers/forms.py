# routers/forms.py

import re
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Depends, Response

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import READ, EDIT, DELETE
from core.permission_helpers import PermitAccess, requires_permit_permission
from core.supabase_client import get_supabase_client
from core.supabase_helpers import fetch_one
from core.errors import handle_supabase_error, not_found
from core.logging_config import logger
from core.utils import sanitize, utc_now_iso

from models.enums import ActivityAction, FormSubmissionStatus, SubcodeType
from models.form import (
    FormTemplateCreate,
    FormTemplateUpdate,
    FormSubmissionCreate,
    FormSubmissionUpdate,
)
from services.activity import log_activity
from services.form_engine import (
    InvalidFormSchema,
    parse_schema,
    default_values,
    validate_all,
    first_invalid_section,
)
from services.form_pdf import generate_form_pdf


router = APIRouter(tags=["Forms"])


# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def _get_template(template_id: str) -> dict:
    template = fetch_one("form_templates", id=template_id)
    if not template:
        raise not_found("Form template")
    return template


def _get_submission(permit_id: str, form_id: str) -> dict:
    submission = fetch_one("form_submissions", id=form_id, permit_id=permit_id)
    if not submission:
        raise not_found("Form submission")
    return submission


def _checked_schema(raw):
    try:
        return parse_schema(raw)
    except InvalidFormSchema as e:
        raise HTTPException(400, str(e))


def permit_autofill(permit: dict) -> dict:
    """Values every application form can prefill from the property and its owner."""
    values = {}

    prop = fetch_one("properties", id=permit.get("property_id")) if permit.get("property_id") else None
    if prop:
        values.update({
            "property_address": prop.get("address"),
            "property_city": prop.get("city"),
            "property_state": prop.get("state"),
            "property_zip": prop.get("zip_code"),
            "block_lot": prop.get("block_lot"),
        })

    owner_id = (prop or {}).get("owner_id") or permit.get("creator_id")
    owner = fetch_one("users", id=owner_id) if owner_id else None
    if owner:
        values.update({
            "owner_name": owner.get("name"),
            "owner_email": owner.get("email"),
            "owner_phone": owner.get("phone"),
        })

    return {k: v for k, v in values.items() if v not in (None, "")}


def _raise_if_invalid(schema, data: dict):
    errors = validate_all(schema, data)
    if errors:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Form has validation errors",
                "errors": errors,
                "section": first_invalid_section(schema, data),
            },
        )


# ============================================================
# FORM TEMPLATES
# ============================================================
@router.get(
    "/form-templates",
    summary="List form templates",
    description="Active templates, optionally filtered by subcode and jurisdiction.",
)
def list_form_templates(
    subcode_type: Optional[SubcodeType] = None,
    jurisdiction_id: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        query = client.table("form_templates").select("*").eq("is_active", True)
        if subcode_type:
            query = query.eq("subcode_type", subcode_type.value)
        if jurisdiction_id:
            query = query.eq("jurisdiction_id", jurisdiction_id)

        res = query.order("name").execute()
        return {"success": True, "data": res.data or []}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch form templates", 500)


@router.get("/form-templates/{template_id}", summary="Get a form template")
def get_form_template(template_id: str, current_user: CurrentUser = Depends(get_current_user)):
    try:
        return {"success": True, "data": _get_template(template_id)}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch form template", 500)


@router.post("/form-templates", status_code=201, summary="Create a form template")
def create_form_template(payload: FormTemplateCreate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    data = sanitize(payload.model_dump(mode="json", by_alias=True))

    try:
        _checked_schema(data["schema"])

        res = client.table("form_templates").insert({
            **data,
            "is_active": True,
            "created_by_id": current_user.id,
            "created_at": utc_now_iso(),
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        return {"success": True, "data": res.data[0]}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create form template", 500)


@router.patch("/form-templates/{template_id}", summary="Update a form template")
def update_form_template(
    template_id: str,
    payload: FormTemplateUpdate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    update_data = sanitize(payload.model_dump(mode="json", by_alias=True, exclude_unset=True))

    try:
        template = _get_template(template_id)
        if "schema" in update_data:
            _checked_schema(update_data["schema"])

        res = (
            client.table("form_templates")
            .update({**update_data, "updated_at": utc_now_iso()})
            .eq("id", template_id)
            .execute()
        )
        return {"success": True, "data": res.data[0] if res.data else {**template, **update_data}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update form template", 500)


@router.delete("/form-templates/{template_id}", summary="Deactivate a form template")
def delete_form_template(template_id: str, current_user: CurrentUser = Depends(get_current_user)):
    """Soft delete; existing submissions keep pointing at the template."""
    client = get_supabase_client()

    try:
        _get_template(template_id)
        client.table("form_templates").update({
            "is_active": False,
            "updated_at": utc_now_iso(),
        }).eq("id", template_id).execute()
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete form template", 500)


# ============================================================
# SUBMISSIONS
# ============================================================
@router.get("/permits/{permit_id}/forms", summary="List form submissions")
def list_submissions(permit_id: str, access: PermitAccess = Depends(requires_permit_permission(READ))):
    client = get_supabase_client()

    try:
        submissions = (
            client.table("form_submissions")
            .select("*")
            .eq("permit_id", permit_id)
            .order("created_at", desc=True)
            .execute()
        ).data or []

        template_ids = list({s["template_id"] for s in submissions if s.get("template_id")})
        templates = {}
        if template_ids:
            rows = (
                client.table("form_templates")
                .select("id, name, subcode_type")
                .in_("id", template_ids)
                .execute()
            ).data or []
            templates = {t["id"]: t for t in rows}

        return {
            "success": True,
            "data": [{**s, "template": templates.get(s.get("template_id"))} for s in submissions],
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch form submissions", 500)


@router.post(
    "/permits/{permit_id}/forms",
    status_code=201,
    summary="Start or submit a permit form",
    description="""
    Data is layered: template defaults, then values prefilled from the
    property and its owner, then the submitted data.

    Submitting with `status=SUBMITTED` validates every visible field.
    On failure the response is 400 with `errors` (field id → message)
    and `section` (index of the first section with errors).
    """,
)
def create_submission(
    permit_id: str,
    payload: FormSubmissionCreate,
    access: PermitAccess = Depends(requires_permit_permission(EDIT)),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        template = _get_template(payload.template_id)
        schema = _checked_schema(template.get("schema"))

        data = {
            **default_values(schema),
            **(template.get("default_values") or {}),
            **permit_autofill(access.permit),
            **payload.data,
        }

        submitting = payload.status == FormSubmissionStatus.SUBMITTED
        if submitting:
            _raise_if_invalid(schema, data)

        now = utc_now_iso()
        res = client.table("form_submissions").insert({
            "permit_id": permit_id,
            "template_id": template["id"],
            "submitted_by_id": current_user.id,
            "data": data,
            "status": payload.status.value,
            "submitted_at": now if submitting else None,
            "created_at": now,
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        submission = res.data[0]
        log_activity(
            current_user.id,
            ActivityAction.CREATED,
            "FORM",
            submission["id"],
            f"{'Submitted' if submitting else 'Started'} form \"{template['name']}\"",
            permit_id=permit_id,
        )

        return {"success": True, "data": submission}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to save form", 500)


@router.get("/permits/{permit_id}/forms/{form_id}", summary="Get a form submission")
def get_submission(
    permit_id: str,
    form_id: str,
    access: PermitAccess = Depends(requires_permit_permission(READ)),
):
    try:
        submission = _get_submission(permit_id, form_id)
        template = fetch_one("form_templates", id=submission.get("template_id"))
        return {"success": True, "data": {**submission, "template": template}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch form submission", 500)


@router.patch("/permits/{permit_id}/forms/{form_id}", summary="Update a form submission")
def update_submission(
    permit_id: str,
    form_id: str,
    payload: FormSubmissionUpdate,
    access: PermitAccess = Depends(requires_permit_permission(EDIT)),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Only drafts can be edited. Setting `status=SUBMITTED` validates the
    merged data and stamps `submitted_at`.
    """
    client = get_supabase_client()
    changes = payload.model_dump(exclude_unset=True)

    try:
        submission = _get_submission(permit_id, form_id)
        submitting = changes.get("status") == FormSubmissionStatus.SUBMITTED

        if submission.get("status") != FormSubmissionStatus.DRAFT and not submitting:
            raise HTTPException(400, "Only draft forms can be edited")

        update_data = {"updated_at": utc_now_iso()}
        data = {**(submission.get("data") or {}), **(changes.get("data") or {})}
        if "data" in changes:
            update_data["data"] = data
        if changes.get("status"):
            update_data["status"] = changes["status"].value

        if submitting:
            template = _get_template(submission["template_id"])
            _raise_if_invalid(_checked_schema(template.get("schema")), data)
            update_data["submitted_at"] = utc_now_iso()

        res = (
            client.table("form_submissions")
            .update(update_data)
            .eq("id", form_id)
            .execute()
        )
        updated = res.data[0] if res.data else {**submission, **update_data}

        if submitting:
            log_activity(
                current_user.id,
                ActivityAction.UPDATED,
                "FORM",
                form_id,
                "Submitted form",
                permit_id=permit_id,
            )

        return {"success": True, "data": updated}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update form", 500)


@router.delete("/permits/{permit_id}/forms/{form_id}", summary="Delete a draft form")
def delete_submission(
    permit_id: str,
    form_id: str,
    access: PermitAccess = Depends(requires_permit_permission(DELETE)),
):
    client = get_supabase_client()

    try:
        submission = _get_submission(permit_id, form_id)
        if submission.get("status") != FormSubmissionStatus.DRAFT:
            raise HTTPException(400, "Only draft forms can be deleted")

        client.table("form_submissions").delete().eq("id", form_id).execute()
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete form", 500)


def pdf_content_disposition(template_name: Optional[str], form_id: str) -> str:
    """
    `filename` is an ASCII fallback (headers go out as latin-1);
    `filename*` carries the real template name, RFC 5987 encoded.
    """
    name = (template_name or "form").strip().replace(" ", "_")
    full = f"{name}_{form_id[:8]}.pdf"
    ascii_name = re.sub(r"[^A-Za-z0-9.-]+", "_", name).strip("_") or "form"
    fallback = f"{ascii_name}_{form_id[:8]}.pdf"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(full)}"


# ============================================================
# PDF
# ============================================================
@router.get("/permits/{permit_id}/forms/{form_id}/pdf", summary="Download a form as PDF")
def download_submission_pdf(
    permit_id: str,
    form_id: str,
    access: PermitAccess = Depends(requires_permit_permission(READ)),
):
    try:
        submission = _get_submission(permit_id, form_id)
        template = _get_template(submission["template_id"])
        schema = _checked_schema(template.get("schema"))

        pdf_bytes = generate_form_pdf(template, schema, submission, permit=access.permit)

    except Exception as e:
        raise handle_supabase_error(e, "Failed to generate form PDF", 500)

    logger.info(f"Generated PDF for form {form_id} ({len(pdf_bytes)} bytes)")

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": pdf_content_disposition(template.get("name"), form_id)},
    )
