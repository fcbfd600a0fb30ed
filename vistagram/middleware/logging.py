"""
Vistagram Backend — Access Log Middleware
===========================================

What:  One access log line per API request on the "vistagram.access" logger.
How:   Times call_next, then reads the status and whatever the auth gates
       left on request.state (user_id) to say who made the request.

Quiet paths:
    /health            probed every few seconds by the load balancer, never logged
    /api/files/...     image fetches, one per post in every feed; DEBUG only

Never logged: request bodies (passwords, uploads), the Authorization
header, the refresh cookie.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from vistagram.middleware.request_id import request_id_var

logger = logging.getLogger("vistagram.access")

SILENT_PATHS = {"/health"}
DEBUG_PREFIXES = ("/api/files/",)


def level_for(path: str, status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    if path.startswith(DEBUG_PREFIXES):
        return logging.DEBUG
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in SILENT_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        level = level_for(path, response.status_code)
        if not logger.isEnabledFor(level):
            return response

        client = request.client.host if request.client else "-"
        # Set by get_current_user / get_optional_user; absent for anonymous requests
        user_id = getattr(request.state, "user_id", None)
        logger.log(
            level,
            "%s %s %d %.1fms rid=%s ip=%s user=%s",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
            request_id_var.get("") or "-",
            client,
            user_id or "-",
        )
        return response
