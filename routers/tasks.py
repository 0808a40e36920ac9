# routers/tasks.py

from fastapi import APIRouter, HTTPException, Depends, Query
from typing import List, Optional

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import READ, EDIT, ASSIGN_TASKS, COMPLETE_TASKS, TASK_ADMIN_ROLES
from core.permission_helpers import PermitAccess, requires_permit_permission, require_permit_access
from core.supabase_client import get_supabase_client
from core.supabase_helpers import fetch_by_ids, fetch_one, group_by, next_sort_order, user_summaries
from core.errors import handle_supabase_error, not_found, forbidden
from core.utils import sanitize, pagination_meta, paginate_list, parse_datetime, utc_now, utc_now_iso

from models.enums import ActivityAction, NotificationType, TaskStatus, Priority
from models.task import TaskCreate, TaskUpdate, ChecklistItemCreate, ChecklistItemUpdate
from services.activity import log_activity
from services.notification_service import send_notification


router = APIRouter(tags=["Tasks"])


# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def task_action_url(permit_id: str, task_id: str) -> str:
    return f"/dashboard/permits/{permit_id}/tasks/{task_id}"


def _checklists(task_ids: List[str]) -> dict:
    if not task_ids:
        return {}
    client = get_supabase_client()
    items = (
        client.table("task_checklist_items")
        .select("*")
        .in_("task_id", task_ids)
        .order("sort_order")
        .execute()
    ).data or []
    return group_by(items, "task_id")


def enrich_tasks(tasks: List[dict]) -> List[dict]:
    """Attach checklist, assignee and creator summaries."""
    checklists = _checklists([t["id"] for t in tasks])
    users = user_summaries([t.get("assignee_id") for t in tasks] + [t.get("creator_id") for t in tasks])
    return [
        {
            **t,
            "checklist_items": checklists.get(t["id"], []),
            "assignee": users.get(t.get("assignee_id")),
            "creator": users.get(t.get("creator_id")),
        }
        for t in tasks
    ]


def _get_task(permit_id: str, task_id: str) -> dict:
    task = fetch_one("tasks", id=task_id, permit_id=permit_id)
    if not task:
        raise not_found("Task")
    return task


def is_overdue(task: dict, now=None) -> bool:
    due = parse_datetime(task.get("due_date"))
    if not due or task.get("status") == TaskStatus.COMPLETED:
        return False
    return due < (now or utc_now())


def my_tasks_sort_key(now):
    """
    Overdue first, then by due date ascending (dated before undated),
    then newest created first.
    """
    def key(task):
        due = parse_datetime(task.get("due_date"))
        created = parse_datetime(task.get("created_at"))
        return (
            0 if is_overdue(task, now) else 1,
            0 if due else 1,
            due.timestamp() if due else 0,
            -(created.timestamp() if created else 0),
        )
    return key


def notify_task_assigned(task: dict, permit_id: str, actor: CurrentUser):
    send_notification(
        task["assignee_id"],
        NotificationType.TASK_ASSIGNED,
        "Task Assigned",
        f"{actor.display_name} assigned you a task: {task['title']}",
        permit_id=permit_id,
        action_url=task_action_url(permit_id, task["id"]),
    )


# ============================================================
# MY TASKS
# ============================================================
@router.get(
    "/tasks",
    summary="My tasks",
    description="""
    Tasks assigned to the current user across all permits.

    **Sorting:** overdue tasks first, then by due date (tasks without a
    due date last), then newest first.

    **Query Parameters:**
    - `status`, `priority`: exact filters
    - `include_completed`: include COMPLETED tasks (default false)
    - `page`, `page_size`
    """,
)
def list_my_tasks(
    status: Optional[TaskStatus] = None,
    priority: Optional[Priority] = None,
    include_completed: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        query = client.table("tasks").select("*").eq("assignee_id", current_user.id)
        if status:
            query = query.eq("status", status.value)
        elif not include_completed:
            query = query.neq("status", TaskStatus.COMPLETED.value)
        if priority:
            query = query.eq("priority", priority.value)

        tasks = query.execute().data or []
        now = utc_now()
        tasks.sort(key=my_tasks_sort_key(now))
        total = len(tasks)
        page_tasks = enrich_tasks(paginate_list(tasks, page, page_size))

        permits = fetch_by_ids("permits", (t.get("permit_id") for t in page_tasks))
        properties = fetch_by_ids("properties", (p.get("property_id") for p in permits.values()))

        def permit_summary(permit_id):
            permit = permits.get(permit_id)
            if not permit:
                return None
            prop = properties.get(permit.get("property_id")) or {}
            return {
                "id": permit["id"],
                "title": permit.get("title"),
                "status": permit.get("status"),
                "property": {"id": prop.get("id"), "name": prop.get("name"), "address": prop.get("address")} if prop else None,
            }

        return {
            "success": True,
            "data": {
                "tasks": [
                    {**t, "is_overdue": is_overdue(t, now), "permit": permit_summary(t.get("permit_id"))}
                    for t in page_tasks
                ],
                "pagination": pagination_meta(page, page_size, total),
            },
        }

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch tasks", 500)


# ============================================================
# PERMIT TASKS: LIST / GET
# ============================================================
@router.get("/permits/{permit_id}/tasks", summary="List permit tasks")
def list_permit_tasks(
    permit_id: str,
    status: Optional[TaskStatus] = None,
    assignee_id: Optional[str] = None,
    access: PermitAccess = Depends(requires_permit_permission(READ)),
):
    client = get_supabase_client()

    try:
        query = client.table("tasks").select("*").eq("permit_id", permit_id)
        if status:
            query = query.eq("status", status.value)
        if assignee_id:
            query = query.eq("assignee_id", assignee_id)

        tasks = query.order("sort_order").order("created_at", desc=True).execute().data or []
        return {"success": True, "data": {"tasks": enrich_tasks(tasks)}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch tasks", 500)


@router.get("/permits/{permit_id}/tasks/{task_id}", summary="Get a task")
def get_task(permit_id: str, task_id: str, access: PermitAccess = Depends(requires_permit_permission(READ))):
    try:
        return {"success": True, "data": enrich_tasks([_get_task(permit_id, task_id)])[0]}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch task", 500)


# ============================================================
# CREATE TASK
# ============================================================
@router.post("/permits/{permit_id}/tasks", status_code=201, summary="Create a task")
def create_task(
    permit_id: str,
    payload: TaskCreate,
    access: PermitAccess = Depends(requires_permit_permission(EDIT)),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    data = sanitize(payload.model_dump())

    try:
        res = client.table("tasks").insert({
            **data,
            "permit_id": permit_id,
            "creator_id": current_user.id,
            "status": TaskStatus.TODO.value,
            "sort_order": next_sort_order("tasks", "permit_id", permit_id),
            "created_at": utc_now_iso(),
        }).execute()

        if not res.data:
            raise HTTPException(500, "Insert returned no data")

        task = enrich_tasks(res.data)[0]

        log_activity(
            current_user.id,
            ActivityAction.CREATED,
            "TASK",
            task["id"],
            f"Created task: {task['title']}",
            permit_id=permit_id,
        )

        if task.get("assignee_id") and task["assignee_id"] != current_user.id:
            assignee_name = (task.get("assignee") or {}).get("name") or "user"
            log_activity(
                current_user.id,
                ActivityAction.TASK_ASSIGNED,
                "TASK",
                task["id"],
                f"Assigned task \"{task['title']}\" to {assignee_name}",
                permit_id=permit_id,
                metadata={"assignee_id": task["assignee_id"]},
            )
            notify_task_assigned(task, permit_id, current_user)

        return {"success": True, "data": task}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to create task", 500)


# ============================================================
# UPDATE TASK
# ============================================================
@router.patch(
    "/permits/{permit_id}/tasks/{task_id}",
    summary="Update a task",
    description="""
    **Permissions:**
    - Completing a task needs `complete_tasks`, or being its assignee
    - Changing the assignee needs `assign_tasks`
    - Any other change needs `edit`; an assignee may still change the
      status of their own task
    """,
)
def update_task(
    permit_id: str,
    task_id: str,
    payload: TaskUpdate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    changes = sanitize(payload.model_dump(exclude_unset=True))

    try:
        access = require_permit_access(permit_id, current_user)
        task = _get_task(permit_id, task_id)

        is_assignee = task.get("assignee_id") == current_user.id
        new_status = changes.get("status")

        if new_status == TaskStatus.COMPLETED and not (access.can(COMPLETE_TASKS) or is_assignee):
            raise forbidden("You don't have permission to complete tasks")

        assignee_changed = "assignee_id" in changes and changes["assignee_id"] != task.get("assignee_id")
        if assignee_changed and not access.can(ASSIGN_TASKS):
            raise forbidden("You don't have permission to assign tasks")

        if not access.can(EDIT):
            other_fields = set(changes) - {"status", "assignee_id"}
            status_ok = (
                "status" not in changes
                or is_assignee
                or (new_status == TaskStatus.COMPLETED and access.can(COMPLETE_TASKS))
            )
            if other_fields or not status_ok:
                raise forbidden("You don't have permission to edit this task")

        completing = new_status == TaskStatus.COMPLETED and task.get("status") != TaskStatus.COMPLETED
        if completing:
            changes["completed_at"] = utc_now_iso()
        elif new_status and new_status != TaskStatus.COMPLETED:
            changes["completed_at"] = None

        res = (
            client.table("tasks")
            .update({**changes, "updated_at": utc_now_iso()})
            .eq("id", task_id)
            .execute()
        )
        updated = enrich_tasks(res.data or [{**task, **changes}])[0]

        if completing:
            log_activity(
                current_user.id,
                ActivityAction.TASK_COMPLETED,
                "TASK",
                task_id,
                f"Completed task: {updated['title']}",
                permit_id=permit_id,
            )
            if task.get("creator_id") and task["creator_id"] != current_user.id:
                send_notification(
                    task["creator_id"],
                    NotificationType.TASK_COMPLETED,
                    "Task Completed",
                    f"{current_user.display_name} completed the task: {updated['title']}",
                    permit_id=permit_id,
                    action_url=task_action_url(permit_id, task_id),
                )

        if assignee_changed:
            new_assignee = changes.get("assignee_id")
            assignee_name = (updated.get("assignee") or {}).get("name") or "user"
            log_activity(
                current_user.id,
                ActivityAction.TASK_ASSIGNED,
                "TASK",
                task_id,
                f"Assigned task \"{updated['title']}\" to {assignee_name}" if new_assignee
                else f"Unassigned task \"{updated['title']}\"",
                permit_id=permit_id,
                metadata={"assignee_id": new_assignee, "previous_assignee_id": task.get("assignee_id")},
            )
            if new_assignee and new_assignee != current_user.id:
                notify_task_assigned(updated, permit_id, current_user)

        return {"success": True, "data": updated}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update task", 500)


# ============================================================
# DELETE TASK
# ============================================================
@router.delete("/permits/{permit_id}/tasks/{task_id}", summary="Delete a task")
def delete_task(permit_id: str, task_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()

    try:
        access = require_permit_access(permit_id, current_user)
        task = _get_task(permit_id, task_id)

        if task.get("creator_id") != current_user.id and access.role not in TASK_ADMIN_ROLES:
            raise forbidden("Only the task creator or permit owner/expeditor can delete tasks")

        client.table("task_checklist_items").delete().eq("task_id", task_id).execute()
        client.table("tasks").delete().eq("id", task_id).execute()

        log_activity(
            current_user.id,
            ActivityAction.DELETED,
            "TASK",
            task_id,
            f"Deleted task: {task['title']}",
            permit_id=permit_id,
        )

        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete task", 500)


# ============================================================
# CHECKLIST
# ============================================================
def _require_edit_or_complete(access: PermitAccess, message: str):
    if not (access.can(EDIT) or access.can(COMPLETE_TASKS)):
        raise forbidden(message)


def _get_item(task_id: str, item_id: str) -> dict:
    item = fetch_one("task_checklist_items", id=item_id, task_id=task_id)
    if not item:
        raise not_found("Checklist item")
    return item


@router.post("/permits/{permit_id}/tasks/{task_id}/checklist", status_code=201, summary="Add a checklist item")
def add_checklist_item(
    permit_id: str,
    task_id: str,
    payload: ChecklistItemCreate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    try:
        access = require_permit_access(permit_id, current_user)
        _require_edit_or_complete(access, "You don't have permission to add checklist items")
        _get_task(permit_id, task_id)

        res = client.table("task_checklist_items").insert({
            "task_id": task_id,
            "title": payload.title.strip(),
            "is_completed": False,
            "sort_order": next_sort_order("task_checklist_items", "task_id", task_id),
            "created_at": utc_now_iso(),
        }).execute()

        return {"success": True, "data": res.data[0]}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to add checklist item", 500)


@router.patch("/permits/{permit_id}/tasks/{task_id}/checklist/{item_id}", summary="Update a checklist item")
def update_checklist_item(
    permit_id: str,
    task_id: str,
    item_id: str,
    payload: ChecklistItemUpdate,
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    changes = sanitize(payload.model_dump(exclude_unset=True))

    try:
        access = require_permit_access(permit_id, current_user)
        _require_edit_or_complete(access, "You don't have permission to update checklist items")
        _get_task(permit_id, task_id)
        item = _get_item(task_id, item_id)

        if "is_completed" in changes:
            changes["completed_at"] = utc_now_iso() if changes["is_completed"] else None

        res = client.table("task_checklist_items").update(changes).eq("id", item_id).execute()
        return {"success": True, "data": res.data[0] if res.data else {**item, **changes}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to update checklist item", 500)


@router.delete("/permits/{permit_id}/tasks/{task_id}/checklist/{item_id}", summary="Delete a checklist item")
def delete_checklist_item(
    permit_id: str,
    task_id: str,
    item_id: str,
    access: PermitAccess = Depends(requires_permit_permission(EDIT)),
):
    client = get_supabase_client()

    try:
        _get_task(permit_id, task_id)
        _get_item(task_id, item_id)
        client.table("task_checklist_items").delete().eq("id", item_id).execute()
        return {"success": True, "data": {"deleted": True}}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete checklist item", 500)
