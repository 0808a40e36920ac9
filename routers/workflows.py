# routers/workflows.py

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import EDIT
from core.permission_helpers import PermitAccess, requires_permit_permission
from core.supabase_client import get_supabase_client
from core.supabase_helpers import fetch_one, next_sort_order
from core.errors import handle_supabase_error, not_found, forbidden
from core.utils import sanitize, utc_now, utc_now_iso

from models.enums import ActivityAction, TaskStatus
from models.task import WorkflowTemplateCreate, WorkflowTemplateUpdate, ApplyWorkflow
from services.activity import log_activity


router = APIRouter(tags=["Workflows"])


def _get_template(template_id: str) -> dict:
    template = fetch_one("workflow_templates", id=template_id)
    if not template:
        raise not_found("Workflow template")
    return template


def _require_template_owner(template: dict, user: CurrentUser):
    if template.get("creator_id") != user.id:
        raise forbidden("Only the template owner can modify it")


def _ordered_steps(steps: list) -> list:
    """Steps keep their given sort_order; missing ones follow list position."""
    normalized = [
        {**step, "sort_order": step.get("sort_order") if step.get("sort_order") is not None else index}
        for index, step in enumerate(steps)
    ]
    return sorted(normalized, key=lambda s: s["sort_order"])


# ============================================================
# TEMPLATES
# ============================================================
@router.get("/workflows", summary="List workflow templates")
def list_workflows(
    permit_type: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        query = client.table("workflow_templates").select("*")
        if permit_type:
            query = query.eq("permit_type", permit_type)

        res = query.order("is_default", desc=True).order("name").execute()
        return {"success": True, "data": res.data or []}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch workflow templates", 500)


@router.get("/workflows/{template_id}", summary="Get a workflow template")
def get_workflow(template_id: str, current_user: CurrentUser = Depends(get_current_user)):
    try:
        return {"success": True, "data": _get_template(template_id)}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch workflow template", 500)


@router.post("/workflows", status_code=201, summary="Create a workflow template")
def create_workflow(payload: WorkflowTemplateCreate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    data = sanitize(payload.model_dump(mode="json"))

    try:
        res = client.table("workflow_templates").insert({
            **data,
            "steps": _ordered_steps(data.get("steps") or []),
            "creator_id": current_user.id,
            "created_at": utc_now_iso(),
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        return {"success": True, "data": res.data[0]}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create workflow template", 500)


@router.patch("/workflows/{template_id}", summary="Update a workflow template")
def update_workflow(
    template_id: str,
    payload: WorkflowTemplateUpdate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    update_data = sanitize(payload.model_dump(mode="json", exclude_unset=True))

    try:
        template = _get_template(template_id)
        _require_template_owner(template, current_user)

        if "steps" in update_data:
            update_data["steps"] = _ordered_steps(update_data["steps"] or [])

        res = (
            client.table("workflow_templates")
            .update({**update_data, "updated_at": utc_now_iso()})
            .eq("id", template_id)
            .execute()
        )
        return {"success": True, "data": res.data[0] if res.data else {**template, **update_data}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update workflow template", 500)


@router.delete("/workflows/{template_id}", summary="Delete a workflow template")
def delete_workflow(template_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        template = _get_template(template_id)
        _require_template_owner(template, current_user)

        client.table("workflow_templates").delete().eq("id", template_id).execute()
        return {"success": True, "data": {"message": "Workflow template deleted successfully"}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete workflow template", 500)


# ============================================================
# APPLY TO PERMIT
# ============================================================
@router.post(
    "/permits/{permit_id}/apply-workflow",
    status_code=201,
    summary="Apply a workflow template to a permit",
    description="""
    Creates one TODO task per template step. A step's `estimated_days`
    becomes a due date counted from today; new tasks are ordered after
    the permit's existing tasks.
    """,
)
def apply_workflow(
    permit_id: str,
    payload: ApplyWorkflow,
    access: PermitAccess = Depends(requires_permit_permission(EDIT)),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        template = _get_template(payload.template_id)
        steps = template.get("steps") or []
        if not isinstance(steps, list) or not steps:
            raise HTTPException(400, "Workflow template has no steps")

        start = next_sort_order("tasks", "permit_id", permit_id)
        today = utc_now()
        now_iso = utc_now_iso()

        rows = []
        for offset, step in enumerate(_ordered_steps(steps)):
            days = step.get("estimated_days")
            rows.append({
                "permit_id": permit_id,
                "creator_id": current_user.id,
                "title": step["title"],
                "description": step.get("description"),
                "priority": step.get("priority") or "NORMAL",
                "status": TaskStatus.TODO.value,
                "due_date": (today + timedelta(days=days)).isoformat() if days is not None else None,
                "sort_order": start + offset,
                "created_at": now_iso,
            })

        res = client.table("tasks").insert(rows).execute()
        tasks = res.data or []

        log_activity(
            current_user.id,
            ActivityAction.CREATED,
            "TASK",
            permit_id,
            f"Applied workflow \"{template['name']}\" ({len(tasks)} tasks)",
            permit_id=permit_id,
            metadata={"template_id": template["id"], "task_count": len(tasks)},
        )

        return {
            "success": True,
            "data": {
                "tasks": tasks,
                "message": f"Applied workflow template \"{template['name']}\" - created {len(tasks)} tasks",
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to apply workflow", 500)
