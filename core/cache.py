# core/cache.py

"""
Per-process TTL cache for slow-changing reference data: jurisdiction
listings and lookups, and the vendor specialty list.

Keys are namespaced (`jurisdictions:lookup:NJ:princeton`). Routers read
through `cached(key, loader, ttl)` and drop a whole namespace with
`invalidate(namespace)` after writing to the underlying table.
"""

import time
from threading import Lock
from typing import Any, Callable, Dict, Optional, Tuple

from core.logging_config import get_logger


log = get_logger("cache")

JURISDICTIONS = "jurisdictions"
VENDORS = "vendors"

DEFAULT_TTL = 300


class ReferenceCache:
    """Thread-safe key → (expires_at, value) store using a monotonic clock."""

    def __init__(self):
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if time.monotonic() >= expires_at:
                del self._entries[key]
                return None
            return value

    def put(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL):
        with self._lock:
            self._entries[key] = (time.monotonic() + ttl_seconds, value)

    def drop(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def drop_namespace(self, namespace: str) -> int:
        prefix = f"{namespace}:"
        with self._lock:
            stale = [k for k in self._entries if k.startswith(prefix)]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_cache = ReferenceCache()


def cache_key(namespace: str, *parts: Any) -> str:
    """`cache_key("jurisdictions", "lookup", "NJ")` → `jurisdictions:lookup:NJ`. None becomes `-`."""
    return ":".join([namespace] + ["-" if p is None else str(p) for p in parts])


def cached(key: str, loader: Callable[[], Any], ttl_seconds: int = DEFAULT_TTL) -> Any:
    """
    Return the cached value for `key`, or call `loader()` and cache its
    result. Loader exceptions propagate and nothing is stored.
    """
    value = _cache.get(key)
    if value is not None:
        return value

    value = loader()
    _cache.put(key, value, ttl_seconds)
    return value


def invalidate(namespace: str):
    removed = _cache.drop_namespace(namespace)
    if removed:
        log.debug(f"Dropped {removed} cached entries in '{namespace}'")


def cache_clear():
    _cache.clear()
