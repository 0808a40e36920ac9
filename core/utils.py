# core/utils.py

import math
import re
from datetime import datetime, date, timezone
from typing import Any, Optional, Tuple


def sanitize(data: dict) -> dict:
    """
    Sanitize dictionary data before it is written to Supabase:
    - Empty strings → None
    - Strip string whitespace
    - date / datetime → ISO strings
    - Enums → their value
    Numeric-looking strings are left alone (zip codes, license numbers).
    """
    clean = {}

    for k, v in data.items():
        if isinstance(v, str):
            stripped = v.strip()
            clean[k] = stripped or None
            continue

        if isinstance(v, (datetime, date)):
            clean[k] = v.isoformat()
            continue

        if hasattr(v, "value") and isinstance(getattr(v, "value"), str):
            clean[k] = v.value
            continue

        clean[k] = v

    return clean


# -----------------------------------------------------
# Time helpers
# -----------------------------------------------------
def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


FRACTION_RE = re.compile(r"(?<=\d\d:\d\d:\d\d)\.(\d+)")


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse Supabase timestamps (ISO strings, trailing Z) into aware datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # Postgres trims trailing zeros; fromisoformat wants 3 or 6 digits
        text = FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# -----------------------------------------------------
# Search
# -----------------------------------------------------
OR_FILTER_RESERVED_RE = re.compile(r'[,()"\\]+')


def or_filter_term(text: Optional[str]) -> str:
    """
    User search text made safe for a PostgREST `or=(...)` filter, where
    commas, parentheses, quotes and backslashes are syntax.
    """
    cleaned = OR_FILTER_RESERVED_RE.sub(" ", text or "")
    return " ".join(cleaned.split())


# -----------------------------------------------------
# Pagination
# -----------------------------------------------------
def page_range(page: int, page_size: int) -> Tuple[int, int]:
    """Inclusive (start, end) offsets for PostgREST `.range()`."""
    start = (page - 1) * page_size
    return start, start + page_size - 1


def pagination_meta(page: int, page_size: int, total: int) -> dict:
    return {
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": math.ceil(total / page_size) if page_size else 0,
    }


def paginate_list(items: list, page: int, page_size: int) -> list:
    start = (page - 1) * page_size
    return items[start:start + page_size]
