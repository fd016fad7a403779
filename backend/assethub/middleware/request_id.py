"""
AssetHub Backend — Request ID Middleware
=========================================

What:  Assigns every request a correlation ID and echoes it back.
Why:   Log lines from the route, the services and the error handlers of one
       request share the ID, and clients can quote it in bug reports.
How:   Reuses an incoming X-Request-ID (set by the gateway) or generates a
       short one, stores it in a ContextVar and in request.state, and adds it
       to the response headers.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one thread each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)

        response.headers["X-Request-ID"] = rid
        return response
