# routers/inspections.py

from fastapi import APIRouter, HTTPException, Depends

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import READ, MANAGE_INSPECTIONS
from core.permission_helpers import PermitAccess, requires_permit_permission
from core.supabase_client import get_supabase_client
from core.supabase_helpers import fetch_one
from core.errors import handle_supabase_error, not_found
from core.utils import sanitize, utc_now_iso

from models.enums import ActivityAction, InspectionStatus, NotificationType
from models.permit import InspectionCreate, InspectionUpdate
from services.activity import log_activity
from services.notification_service import notify_permit_parties


router = APIRouter(
    prefix="/permits",
    tags=["Inspections"],
)

RESULT_STATUSES = (InspectionStatus.PASSED.value, InspectionStatus.FAILED.value)


def _get_inspection(permit_id: str, inspection_id: str) -> dict:
    inspection = fetch_one("inspections", id=inspection_id, permit_id=permit_id)
    if not inspection:
        raise not_found("Inspection")
    return inspection


# ============================================================
# LIST
# ============================================================
@router.get("/{permit_id}/inspections", summary="List inspections")
def list_inspections(permit_id: str, access: PermitAccess = Depends(requires_permit_permission(READ))):
    client = get_supabase_client()

    try:
        res = (
            client.table("inspections")
            .select("*")
            .eq("permit_id", permit_id)
            .order("scheduled_date")
            .execute()
        )
        return {"success": True, "data": res.data or []}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch inspections", 500)


# ============================================================
# SCHEDULE
# ============================================================
@router.post("/{permit_id}/inspections", status_code=201, summary="Schedule an inspection")
def create_inspection(
    permit_id: str,
    payload: InspectionCreate,
    access: PermitAccess = Depends(requires_permit_permission(MANAGE_INSPECTIONS)),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    data = sanitize(payload.model_dump())

    try:
        status = InspectionStatus.SCHEDULED if data.get("scheduled_date") else InspectionStatus.NOT_SCHEDULED

        res = client.table("inspections").insert({
            **data,
            "permit_id": permit_id,
            "status": status.value,
            "created_at": utc_now_iso(),
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        inspection = res.data[0]
        log_activity(
            current_user.id,
            ActivityAction.INSPECTION_SCHEDULED,
            "INSPECTION",
            inspection["id"],
            f"Scheduled {inspection['type']} inspection",
            permit_id=permit_id,
            metadata={"scheduled_date": inspection.get("scheduled_date")},
        )

        when = f" for {inspection['scheduled_date'][:10]}" if inspection.get("scheduled_date") else ""
        notify_permit_parties(
            access.permit,
            current_user.id,
            NotificationType.INSPECTION_SCHEDULED,
            "Inspection Scheduled",
            f"{inspection['type']} inspection{when} on {access.permit['title']}",
        )

        return {"success": True, "data": inspection}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to schedule inspection", 500)


# ============================================================
# UPDATE / RECORD RESULT
# ============================================================
@router.patch("/{permit_id}/inspections/{inspection_id}", summary="Update an inspection")
def update_inspection(
    permit_id: str,
    inspection_id: str,
    payload: InspectionUpdate,
    access: PermitAccess = Depends(requires_permit_permission(MANAGE_INSPECTIONS)),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    PASSED / FAILED stamp `completed_date`, log the result and notify the
    permit's parties. Giving a date to an unscheduled inspection schedules it.
    """
    client = get_supabase_client()
    update_data = sanitize(payload.model_dump(exclude_unset=True))

    try:
        inspection = _get_inspection(permit_id, inspection_id)
        new_status = update_data.get("status")

        if update_data.get("scheduled_date") and not new_status:
            update_data["status"] = InspectionStatus.SCHEDULED.value

        completed = new_status in RESULT_STATUSES
        if completed:
            update_data["completed_date"] = utc_now_iso()

        res = (
            client.table("inspections")
            .update(update_data)
            .eq("id", inspection_id)
            .execute()
        )
        updated = res.data[0] if res.data else {**inspection, **update_data}

        if completed:
            outcome = "passed" if new_status == InspectionStatus.PASSED else "failed"
            log_activity(
                current_user.id,
                ActivityAction.INSPECTION_COMPLETED,
                "INSPECTION",
                inspection_id,
                f"{inspection['type']} inspection {outcome}",
                permit_id=permit_id,
                metadata={"result": new_status},
            )
            notify_permit_parties(
                access.permit,
                current_user.id,
                NotificationType.INSPECTION_COMPLETED,
                f"Inspection {outcome.title()}",
                f"{inspection['type']} inspection {outcome} on {access.permit['title']}",
            )

        return {"success": True, "data": updated}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update inspection", 500)


# ============================================================
# DELETE
# ============================================================
@router.delete("/{permit_id}/inspections/{inspection_id}", summary="Delete an inspection")
def delete_inspection(
    permit_id: str,
    inspection_id: str,
    access: PermitAccess = Depends(requires_permit_permission(MANAGE_INSPECTIONS)),
):
    client = get_supabase_client()

    try:
        _get_inspection(permit_id, inspection_id)
        client.table("inspections").delete().eq("id", inspection_id).execute()
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete inspection", 500)
