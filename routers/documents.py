# routers/documents.py

from fastapi import APIRouter, HTTPException, Depends
from typing import Optional

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import READ, DELETE, UPLOAD_DOCUMENTS
from core.permission_helpers import PermitAccess, requires_permit_permission, require_permit_access
from core.supabase_client import get_supabase_client
from core.supabase_helpers import fetch_one, user_summaries
from core.errors import handle_supabase_error, not_found, forbidden
from core.utils import sanitize, utc_now_iso

from models.enums import ActivityAction, NotificationType
from models.document import DocumentCreate, PhotoCreate, PhotoShare
from services.activity import log_activity
from services.email_triggers import trigger_photo_share_emails
from services.notification_service import notify_permit_parties


router = APIRouter(tags=["Documents"])


# -----------------------------------------------------
# Uploader or a role with delete permission
# -----------------------------------------------------
def require_uploader_or_delete(record: dict, user: CurrentUser) -> PermitAccess:
    access = require_permit_access(record["permit_id"], user)
    if record.get("uploaded_by_id") != user.id and not access.can(DELETE):
        raise forbidden("Only the uploader or the permit owner can delete this")
    return access


def _with_uploaders(rows):
    users = user_summaries(r.get("uploaded_by_id") for r in rows)
    return [{**r, "uploaded_by": users.get(r.get("uploaded_by_id"))} for r in rows]


# ============================================================
# DOCUMENTS
# ============================================================
@router.get("/permits/{permit_id}/documents", summary="List permit documents")
def list_documents(
    permit_id: str,
    category: Optional[str] = None,
    access: PermitAccess = Depends(requires_permit_permission(READ)),
):
    client = get_supabase_client()

    try:
        query = (
            client.table("documents")
            .select("*")
            .eq("permit_id", permit_id)
            .eq("is_archived", False)
        )
        if category:
            query = query.eq("category", category)

        docs = query.order("created_at", desc=True).execute().data or []
        return {"success": True, "data": _with_uploaders(docs)}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch documents", 500)


@router.post(
    "/permits/{permit_id}/documents",
    status_code=201,
    summary="Register an uploaded document",
    description="""
    Records a document the client has already uploaded to storage.
    `file_size` is limited to 10 MB. Parties are notified.
    """,
)
def create_document(
    permit_id: str,
    payload: DocumentCreate,
    access: PermitAccess = Depends(requires_permit_permission(UPLOAD_DOCUMENTS)),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    data = sanitize(payload.model_dump(mode="json"))

    try:
        res = client.table("documents").insert({
            **data,
            "permit_id": permit_id,
            "uploaded_by_id": current_user.id,
            "is_archived": False,
            "created_at": utc_now_iso(),
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        doc = res.data[0]
        log_activity(
            current_user.id,
            ActivityAction.DOCUMENT_UPLOADED,
            "DOCUMENT",
            doc["id"],
            f"Uploaded document: {doc['title']}",
            permit_id=permit_id,
            metadata={"category": doc.get("category"), "file_name": doc.get("file_name")},
        )
        notify_permit_parties(
            access.permit,
            current_user.id,
            NotificationType.DOCUMENT_UPLOADED,
            "New Document",
            f"{current_user.display_name} uploaded \"{doc['title']}\" to {access.permit['title']}",
        )

        return {"success": True, "data": doc}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create document", 500)


@router.delete("/documents/{document_id}", summary="Archive a document")
def delete_document(document_id: str, current_user: CurrentUser = Depends(get_current_user)):
    """Documents are archived, never removed."""
    client = get_supabase_client()

    try:
        doc = fetch_one("documents", id=document_id)
        if not doc or doc.get("is_archived"):
            raise not_found("Document")

        require_uploader_or_delete(doc, current_user)

        client.table("documents").update({
            "is_archived": True,
            "updated_at": utc_now_iso(),
        }).eq("id", document_id).execute()

        log_activity(
            current_user.id,
            ActivityAction.DELETED,
            "DOCUMENT",
            document_id,
            f"Archived document: {doc['title']}",
            permit_id=doc["permit_id"],
        )

        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete document", 500)


# ============================================================
# PHOTOS
# ============================================================
@router.get("/permits/{permit_id}/photos", summary="List permit photos")
def list_photos(
    permit_id: str,
    stage: Optional[str] = None,
    access: PermitAccess = Depends(requires_permit_permission(READ)),
):
    client = get_supabase_client()

    try:
        query = client.table("permit_photos").select("*").eq("permit_id", permit_id)
        if stage:
            query = query.eq("stage", stage)

        photos = query.order("created_at", desc=True).execute().data or []
        return {"success": True, "data": _with_uploaders(photos)}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch photos", 500)


@router.post("/permits/{permit_id}/photos", status_code=201, summary="Register an uploaded photo")
def create_photo(
    permit_id: str,
    payload: PhotoCreate,
    access: PermitAccess = Depends(requires_permit_permission(UPLOAD_DOCUMENTS)),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    data = sanitize(payload.model_dump())

    try:
        res = client.table("permit_photos").insert({
            **data,
            "permit_id": permit_id,
            "uploaded_by_id": current_user.id,
            "created_at": utc_now_iso(),
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        photo = res.data[0]
        log_activity(
            current_user.id,
            ActivityAction.PHOTO_UPLOADED,
            "PHOTO",
            photo["id"],
            f"Uploaded photo{': ' + photo['caption'] if photo.get('caption') else ''}",
            permit_id=permit_id,
            metadata={"stage": photo.get("stage")},
        )

        return {"success": True, "data": photo}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create photo", 500)


@router.delete("/photos/{photo_id}", summary="Delete a photo")
def delete_photo(photo_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        photo = fetch_one("permit_photos", id=photo_id)
        if not photo:
            raise not_found("Photo")

        require_uploader_or_delete(photo, current_user)

        client.table("photo_shares").delete().eq("photo_id", photo_id).execute()
        client.table("permit_photos").delete().eq("id", photo_id).execute()

        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete photo", 500)


@router.post(
    "/photos/{photo_id}/share",
    summary="Share a photo by email",
    description="""
    Emails the photo link to each recipient and records a share per
    recipient. Requires read access to the photo's permit.
    """,
)
def share_photo(photo_id: str, payload: PhotoShare, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        photo = fetch_one("permit_photos", id=photo_id)
        if not photo:
            raise not_found("Photo")

        access = require_permit_access(photo["permit_id"], current_user, READ)
        now = utc_now_iso()

        res = client.table("photo_shares").insert([
            {
                "photo_id": photo_id,
                "shared_by_id": current_user.id,
                "recipient_email": r.email,
                "recipient_name": r.name,
                "message": r.message,
                "created_at": now,
            }
            for r in payload.recipients
        ]).execute()
        shares = res.data or []

        emails = [r.email for r in payload.recipients]
        message = next((r.message for r in payload.recipients if r.message), None)
        trigger_photo_share_emails(access.permit, photo, current_user.display_name, emails, message)

        log_activity(
            current_user.id,
            ActivityAction.PHOTO_SHARED,
            "PHOTO",
            photo_id,
            f"Shared photo with {len(emails)} recipient{'s' if len(emails) != 1 else ''}",
            permit_id=photo["permit_id"],
            metadata={"recipients": emails},
        )

        return {"success": True, "data": {"shares": shares, "count": len(shares)}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to share photo", 500)
