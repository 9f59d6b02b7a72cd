"""
In-memory fixed-window rate limiting for public endpoints.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
import logging

from fastapi import Request

from config import RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW_S

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    """Outcome of a rate limit check."""

    allowed: bool
    remaining: int
    reset_at: float
    retry_after_s: Optional[float] = None


class RateLimiter:
    """
    Fixed-window request counter keyed by client.

    Args:
        max_requests: Requests allowed per window
        window_s: Window length in seconds
        key_prefix: Namespace for the keys of this limiter
        clock: Time source (seconds)
    """

    def __init__(
        self,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window_s: float = RATE_LIMIT_WINDOW_S,
        key_prefix: str = "",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_s = window_s
        self.key_prefix = key_prefix
        self._clock = clock
        # key -> {"count": int, "reset_at": float}
        self._entries: Dict[str, Dict[str, float]] = {}

    def check(self, key: str) -> RateLimitResult:
        """Count one request for `key` and report whether it is allowed."""
        now = self._clock()
        full_key = f"{self.key_prefix}:{key}" if self.key_prefix else key
        entry = self._entries.get(full_key)

        # No entry or window has passed: start a new window
        if entry is None or now >= entry["reset_at"]:
            self._purge_expired(now)
            entry = {"count": 1, "reset_at": now + self.window_s}
            self._entries[full_key] = entry
            return RateLimitResult(
                allowed=True,
                remaining=self.max_requests - 1,
                reset_at=entry["reset_at"],
            )

        entry["count"] += 1
        if entry["count"] > self.max_requests:
            retry_after = max(0.0, entry["reset_at"] - now)
            logger.warning(f"Rate limit exceeded for {full_key}")
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_at=entry["reset_at"],
                retry_after_s=retry_after,
            )

        return RateLimitResult(
            allowed=True,
            remaining=self.max_requests - int(entry["count"]),
            reset_at=entry["reset_at"],
        )

    def reset(self):
        """Clear all counters."""
        self._entries.clear()

    def _purge_expired(self, now: float):
        expired = [k for k, e in self._entries.items() if now >= e["reset_at"]]
        for key in expired:
            del self._entries[key]


def get_client_ip(request: Request) -> str:
    """Client IP from proxy headers, falling back to the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client is not None:
        return request.client.host
    return "unknown"


search_rate_limiter = RateLimiter(key_prefix="property-search")
