# eastlink/core/rate_limit.py
# Simple in-memory rate limiting; single process only, resets on restart.
import time
from typing import Optional

from fastapi import HTTPException, Request, status

from eastlink.core.config import settings
from eastlink.core.logging import security_log


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimiter:
    """Per-IP sliding window kept on ``app.state.rate_limits``.

    Each key maps to the timestamps of the requests still inside the window;
    the list is pruned on every call and keys of clients that went quiet are
    swept once per window.
    """

    def __init__(
        self,
        scope: str,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        limit_setting: str = "RATE_LIMIT_MAX_REQUESTS",
        message: str = "Too many requests, please try again later",
    ):
        self.scope = scope
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.limit_setting = limit_setting
        self.message = message
        self.last_sweep = 0.0

    @property
    def limit(self) -> int:
        if self.max_requests is not None:
            return self.max_requests
        return getattr(settings, self.limit_setting)

    @property
    def window(self) -> int:
        return self.window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS

    def sweep(self, store: dict, now: float):
        """Drop this scope's keys whose newest request has left the window."""
        stale = [key for key, stamps in store.items()
                 if key[0] == self.scope and (not stamps or now - stamps[-1] >= self.window)]
        for key in stale:
            del store[key]
        self.last_sweep = now

    def __call__(self, request: Request):
        state = request.app.state
        if not hasattr(state, "rate_limits"):
            state.rate_limits = {}
        store = state.rate_limits

        ip = client_ip(request)
        key = (self.scope, ip)
        now = time.monotonic()
        if now - self.last_sweep >= self.window:
            self.sweep(store, now)
        recent = [t for t in store.get(key, []) if now - t < self.window]

        if len(recent) >= self.limit:
            store[key] = recent
            security_log.rate_limit_exceeded(ip, request.url.path)
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=self.message)

        recent.append(now)
        store[key] = recent


api_limiter = RateLimiter("api")
auth_limiter = RateLimiter(
    "auth",
    limit_setting="AUTH_RATE_LIMIT_MAX",
    message="Too many authentication attempts, please try again later.",
)
