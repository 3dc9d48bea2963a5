"""
Fixed-window request throttling for the public auth endpoints.

Counters live in process memory and are keyed by scope and client IP, so each
worker enforces its own budget.
"""
from __future__ import annotations

from dataclasses import dataclass
import math
import threading
import time

from fastapi import HTTPException, Request, status

TOO_MANY_REQUESTS = "Too many requests. Try again shortly."


@dataclass
class _Window:
    hits: int
    resets_at: float


class _RateLimiter:
    def __init__(self) -> None:
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int, window_seconds: int) -> float:
        """Count one request; return the seconds to wait when over the limit, else 0."""
        now = time.monotonic()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.resets_at:
                window = self._windows[key] = _Window(0, now + window_seconds)
            window.hits += 1
            if window.hits > limit:
                return window.resets_at - now
            return 0.0

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


_limiter = _RateLimiter()


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_ip(request: Request, scope: str, *, limit: int, window_seconds: int) -> None:
    wait = _limiter.hit(f"{scope}:{_client_ip(request)}", limit, window_seconds)
    if wait > 0:
        raise HTTPException(
            status.HTTP_429_TOO_MANY_REQUESTS,
            TOO_MANY_REQUESTS,
            headers={"Retry-After": str(max(1, math.ceil(wait)))},
        )


def reset_rate_limits() -> None:
    _limiter.reset()
