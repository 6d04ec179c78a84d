"""Rate limiting middleware for the Isolator Modal Analysis API."""

import logging
import time
from collections import defaultdict
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

CALCULATION_ROUTES = ("/api/modal-analysis",)
AUTH_ROUTES = ("/api/auth/signup", "/api/auth/login")
EXEMPT_ROUTES = ("/api/health", "/api/webhook/stripe")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Simple in-memory sliding-window rate limiter.

    Single process only; a multi-worker deployment needs a shared store.
    """

    # Prune stale client keys every 5 minutes
    _CLEANUP_INTERVAL = 300
    _WINDOW = 60

    def __init__(
        self,
        app,
        requests_per_minute: int = 60,
        calculation_requests_per_minute: int = 20,
        auth_requests_per_minute: int = 5,
    ):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.calculation_requests_per_minute = calculation_requests_per_minute
        self.auth_requests_per_minute = auth_requests_per_minute
        self._requests: dict[str, list[float]] = defaultdict(list)
        self._last_cleanup = time.time()

    def _get_client_id(self, request: Request) -> str:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    def _cleanup_stale_keys(self) -> None:
        """Drop client keys with no requests inside the window."""
        now = time.time()
        if now - self._last_cleanup < self._CLEANUP_INTERVAL:
            return
        self._last_cleanup = now
        window_start = now - self._WINDOW
        stale_keys = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for key in stale_keys:
            del self._requests[key]

    def _check_rate(self, client_id: str, limit: int) -> bool:
        """Record a request; False when the client is over its limit."""
        now = time.time()
        window_start = now - self._WINDOW

        self._requests[client_id] = [
            t for t in self._requests[client_id] if t > window_start
        ]

        if len(self._requests[client_id]) >= limit:
            return False

        self._requests[client_id].append(now)
        return True

    def _too_many(self, client_id: str, detail: str) -> Response:
        logger.warning("Rate limit hit for %s: %s", client_id, detail)
        return JSONResponse(status_code=429, content={"detail": detail})

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in EXEMPT_ROUTES:
            return await call_next(request)

        self._cleanup_stale_keys()
        client_id = self._get_client_id(request)

        if path.startswith(AUTH_ROUTES):
            if not self._check_rate(f"{client_id}:auth", self.auth_requests_per_minute):
                return self._too_many(client_id, "Too many authentication attempts. Please wait before trying again.")

        if path.startswith(CALCULATION_ROUTES):
            if not self._check_rate(f"{client_id}:calc", self.calculation_requests_per_minute):
                return self._too_many(client_id, "Calculation rate limit exceeded. Please wait before trying again.")

        if not self._check_rate(client_id, self.requests_per_minute):
            return self._too_many(client_id, "Rate limit exceeded. Please wait before trying again.")

        return await call_next(request)
