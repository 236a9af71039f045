"""
Quillpost Backend — Request Logging Middleware
===============================================

What:  One access-log line per API request: method, path, status, duration,
       request id and acting user.
How:   Starlette BaseHTTPMiddleware timing the downstream call; the level
       follows the status class (5xx ERROR, 4xx WARNING, else INFO).
Who:   Every request except /health probes.

Never logged: request bodies (draft content is user data) and identity
headers other than the user id.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from quillpost.middleware.request_id import request_id_var

logger = logging.getLogger("quillpost.access")

_QUIET_PATHS = {"/health"}


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access logging with request-id correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in _QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        rid = request_id_var.get("")
        user_id = request.headers.get("X-User-Id") or "-"
        status = response.status_code
        logger.log(
            _level_for(status),
            "%s %s %d %.1fms [%s] user=%s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            user_id,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "user_id": user_id,
            },
        )
        return response
