# core/supabase_client.py

from typing import Optional

from supabase import create_client, Client

from core.config import settings
from core.logging_config import logger


# ============================================================
# Client factory (service role)
# ============================================================
def get_supabase_client() -> Optional[Client]:
    """
    Service-role client: queries bypass row-level security, so the
    routers enforce owner and party-role access themselves.

    Returns None when credentials are missing or the client cannot be built.
    """
    if not (settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY):
        logger.error(
            f"Supabase not configured (URL {'set' if settings.SUPABASE_URL else 'missing'}, "
            f"service role key {'set' if settings.SUPABASE_SERVICE_ROLE_KEY else 'missing'})"
        )
        return None

    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        logger.error(f"Supabase client init failed: {e}", exc_info=True)
        return None


# ============================================================
# Health probe
# ============================================================
HEALTH_TABLES = ("users", "properties", "permits", "jurisdictions", "vendor_profiles")


def _probe_table(client: Client, table: str) -> dict:
    try:
        res = client.table(table).select("id").limit(1).execute()
        return {"status": "ok", "rows_found": len(res.data or [])}
    except Exception as err:
        logger.warning(f"Health probe failed for {table}: {err}")
        return {"status": "error", "detail": str(err)}


def ping_supabase() -> dict:
    """One-row read per core table. Never raises."""
    client = get_supabase_client()
    if client is None:
        return {"status": "not_configured", "tables": {}}

    tables = {t: _probe_table(client, t) for t in HEALTH_TABLES}
    failed = [t for t, r in tables.items() if r["status"] != "ok"]

    if not failed:
        status = "ok"
    elif len(failed) == len(tables):
        status = "error"
    else:
        status = "degraded"

    return {"status": status, "tables": tables}
