"""
AssetHub Backend — Request Logging Middleware
==============================================

What:  One access-log line per HTTP request.
Why:   Method, path, status, duration and request ID are enough to trace a
       slow or failing call back through the service logs.

Levels:
    5xx → ERROR, 4xx → WARNING, everything else → INFO

What we log vs what we don't:
    ✅ method, path, status, duration, client IP, request ID, caller id
    ❌ request bodies (note contents), auth headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from assethub.middleware.request_id import request_id_var

logger = logging.getLogger("assethub.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Health probes run every few seconds
        if request.url.path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")
        user = request.headers.get("X-User-ID", "-")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] user=%s from %s",
            request.method,
            request.url.path,
            status,
            duration_ms,
            rid,
            user,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
