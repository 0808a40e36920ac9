# routers/milestones.py

from fastapi import APIRouter, HTTPException, Depends

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import READ, EDIT
from core.permission_helpers import PermitAccess, requires_permit_permission
from core.supabase_client import get_supabase_client
from core.supabase_helpers import fetch_one, next_sort_order
from core.errors import handle_supabase_error, not_found
from core.utils import sanitize, utc_now_iso

from models.enums import ActivityAction, MilestoneStatus, NotificationType
from models.permit import MilestoneCreate, MilestoneUpdate
from services.activity import log_activity
from services.notification_service import notify_permit_parties


router = APIRouter(
    prefix="/permits",
    tags=["Permit Milestones"],
)


def _get_milestone(permit_id: str, milestone_id: str) -> dict:
    milestone = fetch_one("permit_milestones", id=milestone_id, permit_id=permit_id)
    if not milestone:
        raise not_found("Milestone")
    return milestone


# ============================================================
# LIST
# ============================================================
@router.get("/{permit_id}/milestones", summary="List milestones")
def list_milestones(permit_id: str, access: PermitAccess = Depends(requires_permit_permission(READ))):
    client = get_supabase_client()

    try:
        res = (
            client.table("permit_milestones")
            .select("*")
            .eq("permit_id", permit_id)
            .order("sort_order")
            .execute()
        )
        return {"success": True, "data": res.data or []}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch milestones", 500)


# ============================================================
# CREATE
# ============================================================
@router.post("/{permit_id}/milestones", status_code=201, summary="Add a milestone")
def create_milestone(
    permit_id: str,
    payload: MilestoneCreate,
    access: PermitAccess = Depends(requires_permit_permission(EDIT)),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    data = sanitize(payload.model_dump())

    try:
        if data.get("sort_order") is None:
            data["sort_order"] = next_sort_order("permit_milestones", "permit_id", permit_id)

        res = client.table("permit_milestones").insert({
            **data,
            "permit_id": permit_id,
            "status": MilestoneStatus.PENDING.value,
            "created_at": utc_now_iso(),
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        milestone = res.data[0]
        log_activity(
            current_user.id,
            ActivityAction.CREATED,
            "MILESTONE",
            milestone["id"],
            f"Added milestone \"{milestone['title']}\"",
            permit_id=permit_id,
        )

        return {"success": True, "data": milestone}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create milestone", 500)


# ============================================================
# UPDATE
# ============================================================
@router.patch("/{permit_id}/milestones/{milestone_id}", summary="Update a milestone")
def update_milestone(
    permit_id: str,
    milestone_id: str,
    payload: MilestoneUpdate,
    access: PermitAccess = Depends(requires_permit_permission(EDIT)),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Completing a milestone stamps `completed_at`, logs it and notifies the
    permit's parties. Any other status clears `completed_at`.
    """
    client = get_supabase_client()
    update_data = sanitize(payload.model_dump(exclude_unset=True))

    try:
        milestone = _get_milestone(permit_id, milestone_id)
        new_status = update_data.get("status")
        completing = new_status == MilestoneStatus.COMPLETED and milestone.get("status") != MilestoneStatus.COMPLETED

        if completing:
            update_data["completed_at"] = utc_now_iso()
        elif new_status and new_status != MilestoneStatus.COMPLETED:
            update_data["completed_at"] = None

        res = (
            client.table("permit_milestones")
            .update(update_data)
            .eq("id", milestone_id)
            .execute()
        )
        updated = res.data[0] if res.data else {**milestone, **update_data}

        if completing:
            log_activity(
                current_user.id,
                ActivityAction.MILESTONE_COMPLETED,
                "MILESTONE",
                milestone_id,
                f"Completed milestone \"{milestone['title']}\"",
                permit_id=permit_id,
            )
            notify_permit_parties(
                access.permit,
                current_user.id,
                NotificationType.MILESTONE_COMPLETED,
                "Milestone Completed",
                f"\"{milestone['title']}\" was completed on {access.permit['title']}",
            )

        return {"success": True, "data": updated}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update milestone", 500)


# ============================================================
# DELETE
# ============================================================
@router.delete("/{permit_id}/milestones/{milestone_id}", summary="Delete a milestone")
def delete_milestone(
    permit_id: str,
    milestone_id: str,
    access: PermitAccess = Depends(requires_permit_permission(EDIT)),
):
    client = get_supabase_client()

    try:
        _get_milestone(permit_id, milestone_id)
        client.table("permit_milestones").delete().eq("id", milestone_id).execute()
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete milestone", 500)
