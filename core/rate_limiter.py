# core/rate_limiter.py

"""
Sliding-window request limits, kept in process memory.

Each key (e.g. `chat:<user id>`) holds the timestamps of its recent
requests; a request is refused once `max_requests` fall inside the window.
"""

import time
from collections import defaultdict, deque
from threading import Lock
from typing import Deque, Dict

from fastapi import HTTPException

from core.logging_config import get_logger


log = get_logger("rate_limit")

_hits: Dict[str, Deque[float]] = defaultdict(deque)
_lock = Lock()


def record_hit(key: str, max_requests: int, window_seconds: int) -> int:
    """
    Count a request against `key`.

    Returns the number of requests left in the window, or -1 when the
    request is over the limit (refused requests are not recorded).
    """
    now = time.monotonic()
    with _lock:
        hits = _hits[key]
        while hits and hits[0] <= now - window_seconds:
            hits.popleft()

        if len(hits) >= max_requests:
            return -1

        hits.append(now)
        return max_requests - len(hits)


def require_rate_limit(key: str, max_requests: int, window_seconds: int = 60) -> int:
    """Raise 429 with `Retry-After` when `key` is over its limit."""
    remaining = record_hit(key, max_requests, window_seconds)
    if remaining < 0:
        log.warning(f"Rate limit hit for {key}")
        raise HTTPException(
            status_code=429,
            detail=f"Too many requests. Limit is {max_requests} per {window_seconds} seconds.",
            headers={
                "Retry-After": str(window_seconds),
                "X-RateLimit-Limit": str(max_requests),
            },
        )
    return remaining


def reset_rate_limits():
    with _lock:
        _hits.clear()
