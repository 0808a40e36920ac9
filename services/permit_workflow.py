# services/permit_workflow.py

"""
Permit status machine.

A permit moves through the jurisdiction's review process one step at a
time; `PERMIT_TRANSITIONS` lists the statuses reachable from each status.
CLOSED is terminal. DENIED and EXPIRED go back to DRAFT for a fresh
application.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from models.enums import PermitStatus as S


PERMIT_TRANSITIONS: Dict[str, List[str]] = {
    S.DRAFT: [S.READY_TO_SUBMIT],
    S.READY_TO_SUBMIT: [S.SUBMITTED, S.DRAFT],
    S.SUBMITTED: [S.UNDER_REVIEW],
    S.UNDER_REVIEW: [S.CORRECTIONS_NEEDED, S.APPROVED, S.DENIED],
    S.CORRECTIONS_NEEDED: [S.RESUBMITTED],
    S.RESUBMITTED: [S.UNDER_REVIEW],
    S.APPROVED: [S.PERMIT_ISSUED],
    S.PERMIT_ISSUED: [S.INSPECTION_SCHEDULED],
    S.INSPECTION_SCHEDULED: [S.INSPECTION_PASSED, S.INSPECTION_FAILED],
    S.INSPECTION_PASSED: [S.CERTIFICATE_OF_OCCUPANCY],
    S.INSPECTION_FAILED: [S.INSPECTION_SCHEDULED],
    S.CERTIFICATE_OF_OCCUPANCY: [S.CLOSED],
    S.DENIED: [S.DRAFT],
    S.EXPIRED: [S.DRAFT],
    S.CLOSED: [],
}

PERMIT_STATUS_LABELS: Dict[str, str] = {
    S.DRAFT: "Draft",
    S.READY_TO_SUBMIT: "Ready to Submit",
    S.SUBMITTED: "Submitted",
    S.UNDER_REVIEW: "Under Review",
    S.CORRECTIONS_NEEDED: "Corrections Needed",
    S.RESUBMITTED: "Resubmitted",
    S.APPROVED: "Approved",
    S.DENIED: "Denied",
    S.PERMIT_ISSUED: "Permit Issued",
    S.INSPECTION_SCHEDULED: "Inspection Scheduled",
    S.INSPECTION_PASSED: "Inspection Passed",
    S.INSPECTION_FAILED: "Inspection Failed",
    S.CERTIFICATE_OF_OCCUPANCY: "Certificate of Occupancy",
    S.CLOSED: "Closed",
    S.EXPIRED: "Expired",
}

# Permits in these statuses no longer block property deletion
INACTIVE_STATUSES = [S.CLOSED.value, S.EXPIRED.value, S.DENIED.value]

# Only these may be deleted by their creator
DELETABLE_STATUSES = [S.DRAFT.value, S.DENIED.value, S.CLOSED.value, S.EXPIRED.value]

PERMIT_VALIDITY_DAYS = 365


class InvalidTransition(ValueError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        allowed = allowed_transitions(current)
        super().__init__(
            f"Cannot transition from {current} to {target}. "
            f"Allowed: {', '.join(allowed) if allowed else 'none'}"
        )


def status_label(status: Optional[str]) -> str:
    if status is None:
        return ""
    return PERMIT_STATUS_LABELS.get(str(status), str(status))


def allowed_transitions(current: str) -> List[str]:
    return [str(s) for s in PERMIT_TRANSITIONS.get(str(current), [])]


def can_transition(current: str, target: str) -> bool:
    return str(target) in allowed_transitions(current)


def validate_transition(current: str, target: str):
    """Raises InvalidTransition when `target` is not reachable from `current`."""
    if not can_transition(current, target):
        raise InvalidTransition(str(current), str(target))


def transition_options(current: str) -> List[dict]:
    """Menu entries for the status picker."""
    return [{"status": s, "label": status_label(s)} for s in allowed_transitions(current)]


def status_side_effects(permit: dict, new_status: str, now: Optional[datetime] = None) -> dict:
    """
    Timestamp columns to write alongside a status change.
    An already-set expiry is never pushed back when a permit is issued.
    """
    now = now or datetime.now(timezone.utc)
    stamp = now.isoformat()
    updates: dict = {}

    if new_status == S.SUBMITTED:
        updates["submitted_at"] = stamp
    elif new_status == S.APPROVED:
        updates["approved_at"] = stamp
    elif new_status == S.PERMIT_ISSUED:
        updates["issued_at"] = stamp
        if not permit.get("expires_at"):
            updates["expires_at"] = (now + timedelta(days=PERMIT_VALIDITY_DAYS)).isoformat()
    elif new_status in (S.CLOSED, S.EXPIRED, S.DENIED):
        updates["closed_at"] = stamp

    return updates
