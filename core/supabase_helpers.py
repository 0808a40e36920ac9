# core/supabase_helpers.py

from typing import Dict, Iterable, List, Optional

from core.supabase_client import get_supabase_client


# =================================================================
#  SMALL QUERY HELPERS SHARED BY THE ROUTERS
# =================================================================
# PostgREST embeds are avoided on purpose: related rows are fetched
# with one `in_()` query and stitched together in Python.
# =================================================================

def fetch_one(table: str, **filters) -> Optional[dict]:
    client = get_supabase_client()
    query = client.table(table).select("*")
    for key, val in filters.items():
        query = query.eq(key, val)
    res = query.limit(1).execute()
    return res.data[0] if res.data else None


def fetch_by_ids(table: str, ids: Iterable[Optional[str]], columns: str = "*") -> Dict[str, dict]:
    unique = list({i for i in ids if i})
    if not unique:
        return {}
    client = get_supabase_client()
    res = client.table(table).select(columns).in_("id", unique).execute()
    return {row["id"]: row for row in (res.data or [])}


def user_summaries(user_ids: Iterable[Optional[str]]) -> Dict[str, dict]:
    """{id: {id, name, email, avatar_url}} for display next to records."""
    users = fetch_by_ids("users", user_ids)
    return {
        uid: {
            "id": uid,
            "name": u.get("name"),
            "email": u.get("email"),
            "avatar_url": u.get("avatar_url"),
        }
        for uid, u in users.items()
    }


def next_sort_order(table: str, column: str, value: str) -> int:
    """Max `sort_order` among rows where `column == value`, plus one (0 when empty)."""
    client = get_supabase_client()
    res = (
        client.table(table)
        .select("sort_order")
        .eq(column, value)
        .order("sort_order", desc=True)
        .limit(1)
        .execute()
    )
    if not res.data or res.data[0].get("sort_order") is None:
        return 0
    return res.data[0]["sort_order"] + 1


def group_by(rows: List[dict], key: str) -> Dict[str, List[dict]]:
    grouped: Dict[str, List[dict]] = {}
    for row in rows:
        grouped.setdefault(row.get(key), []).append(row)
    return grouped
