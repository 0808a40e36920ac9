from fastapi import Depends, HTTPException
from typing import List, Optional

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import ROLE_PERMISSIONS
from core.supabase_client import get_supabase_client


# -----------------------------------------------------
# Resolved access of one user to one permit
# -----------------------------------------------------
class PermitAccess:
    def __init__(self, permit: dict, role: str, permissions: List[str], is_creator: bool):
        self.permit = permit
        self.role = role
        self.permissions = permissions
        self.is_creator = is_creator

    @property
    def permit_id(self) -> str:
        return self.permit["id"]

    def can(self, permission: str) -> bool:
        return permission in self.permissions

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "permissions": list(self.permissions),
            "is_creator": self.is_creator,
        }


def get_role_permissions(role: Optional[str]) -> List[str]:
    """Unknown or missing roles fall back to VIEWER."""
    return list(ROLE_PERMISSIONS.get(role or "", ROLE_PERMISSIONS["VIEWER"]))


def fetch_permit(permit_id: str) -> Optional[dict]:
    client = get_supabase_client()
    res = client.table("permits").select("*").eq("id", permit_id).limit(1).execute()
    return res.data[0] if res.data else None


# -----------------------------------------------------
# Permit access evaluation
# -----------------------------------------------------
def check_permit_access(permit_id: str, user_id: str, permit: Optional[dict] = None) -> Optional[PermitAccess]:
    """
    Creator → OWNER. Otherwise the role from the user's party row.
    Returns None when the permit does not exist or the user is not on it.
    """
    if permit is None:
        permit = fetch_permit(permit_id)
    if not permit:
        return None

    if permit.get("creator_id") == user_id:
        return PermitAccess(permit, "OWNER", get_role_permissions("OWNER"), True)

    client = get_supabase_client()
    party_res = (
        client.table("permit_parties")
        .select("id, role")
        .eq("permit_id", permit_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    if not party_res.data:
        return None

    role = party_res.data[0].get("role") or "VIEWER"
    if role not in ROLE_PERMISSIONS:
        role = "VIEWER"
    return PermitAccess(permit, role, get_role_permissions(role), False)


def require_permit_access(
    permit_id: str,
    user: CurrentUser,
    permission: Optional[str] = None,
) -> PermitAccess:
    """
    404 when the permit is missing, 403 when the user is not on it
    or lacks `permission`.
    """
    permit = fetch_permit(permit_id)
    if not permit:
        raise HTTPException(status_code=404, detail="Permit not found")

    access = check_permit_access(permit_id, user.id, permit=permit)
    if access is None:
        raise HTTPException(status_code=403, detail="You don't have access to this permit")

    if permission and not access.can(permission):
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    return access


# -----------------------------------------------------
# FastAPI dependency wrapper
# -----------------------------------------------------
def requires_permit_permission(permission: Optional[str] = "read"):
    """
    Usage:
        @router.post("/{permit_id}/milestones")
        def create(..., access: PermitAccess = Depends(requires_permit_permission("edit"))):

    The route must declare a `permit_id` path parameter.
    """

    def dependency(permit_id: str, current_user: CurrentUser = Depends(get_current_user)) -> PermitAccess:
        return require_permit_access(permit_id, current_user, permission)

    return dependency


def get_permit_user_ids(permit: dict) -> List[str]:
    """Creator plus every party user on the permit, each once."""
    client = get_supabase_client()
    res = (
        client.table("permit_parties")
        .select("user_id")
        .eq("permit_id", permit["id"])
        .execute()
    )
    ids = []
    for uid in [permit.get("creator_id")] + [p.get("user_id") for p in (res.data or [])]:
        if uid and uid not in ids:
            ids.append(uid)
    return ids
