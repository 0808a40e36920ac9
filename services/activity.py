# services/activity.py

from typing import Optional

from core.supabase_client import get_supabase_client
from core.logging_config import logger
from core.utils import utc_now_iso
from models.enums import ActivityAction


def log_activity(
    user_id: str,
    action: ActivityAction,
    entity_type: str,
    entity_id: str,
    description: str,
    permit_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> Optional[dict]:
    """
    Append an entry to the permit audit trail.

    Audit writes never fail the request that triggered them; errors are
    logged and None is returned.
    """
    row = {
        "user_id": user_id,
        "action": str(action),
        "entity_type": entity_type,
        "entity_id": entity_id,
        "description": description,
        "permit_id": permit_id,
        "metadata": metadata,
        "created_at": utc_now_iso(),
    }

    try:
        client = get_supabase_client()
        res = client.table("activity_logs").insert(row).execute()
        return res.data[0] if res.data else None
    except Exception as e:
        logger.error(f"Failed to log activity {action} on {entity_type}:{entity_id}: {e}")
        return None
