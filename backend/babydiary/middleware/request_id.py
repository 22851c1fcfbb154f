"""
Baby Diary Backend — Request ID Middleware
============================================

What:  Assigns every request a correlation id and echoes it as X-Request-ID.
How:   Reuses a client-supplied X-Request-ID (the frontend can tag a user
       action) or generates a short one; stores it in a ContextVar so
       loggers and exception handlers can read it without a request object.
When:  Outermost middleware, so every later log line can carry the id.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_REQUEST_ID = 64


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "").strip()[:MAX_CLIENT_REQUEST_ID]
        if not rid:
            rid = uuid.uuid4().hex[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
