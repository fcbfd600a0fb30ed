"""
Vistagram Backend — Auth Rate Limiting Middleware
===================================================

What:  Per-IP sliding window limiter on the credential endpoints
       (POST /api/auth/login and /api/auth/register).
Why:   Every attempt costs an Argon2 hash; unthrottled, these endpoints are
       both a password-guessing oracle and a cheap way to burn CPU.
How:   Timestamps per client IP kept in memory; a request is rejected with
       429 once AUTH_RATE_LIMIT_REQUESTS fall inside the last
       AUTH_RATE_LIMIT_WINDOW seconds. Other paths pass straight through.

Algorithm: Sliding Window Log
    1. Each IP gets a list of request timestamps
    2. On each request, drop timestamps older than the window
    3. If the remaining count >= limit, reject with 429 + Retry-After
    4. Otherwise record the current timestamp and continue

Single-process only: counts live in this worker's memory.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from vistagram.config import Settings, settings as default_settings
from vistagram.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

LIMITED_PATHS = {"/api/auth/login", "/api/auth/register"}


class RateLimitMiddleware(BaseHTTPMiddleware):

    def __init__(self, app, config: Optional[Settings] = None, **kwargs):
        super().__init__(app, **kwargs)
        self.config = config or default_settings
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method != "POST" or request.url.path not in LIMITED_PATHS:
            return await call_next(request)

        client_ip = (
            getattr(request.client, "host", "unknown")
            if request.client
            else "unknown"
        )
        limit = self.config.auth_rate_limit_requests
        window = self.config.auth_rate_limit_window

        now = time.time()
        window_start = now - window

        self._requests[client_ip] = [
            ts for ts in self._requests[client_ip] if ts > window_start
        ]

        if len(self._requests[client_ip]) >= limit:
            oldest = self._requests[client_ip][0]
            retry_after = int(oldest + window - now) + 1

            logger.warning(
                "Auth rate limit exceeded for IP %s on %s: %d requests in %ds window",
                client_ip,
                request.url.path,
                len(self._requests[client_ip]),
                window,
            )

            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": exc.message,
                    "code": "rate_limit_exceeded",
                    "details": {"retry_after": exc.retry_after},
                },
                headers={"Retry-After": str(retry_after)},
            )

        self._requests[client_ip].append(now)

        self._seen += 1
        if self._seen % 1000 == 0:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        """Drop IPs with no request inside the current window."""
        inactive_ips = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or max(timestamps) < window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]

        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))
