"""
Baby Diary Backend — Request Logging Middleware
=================================================

What:  One access-log line per HTTP request on the `babydiary.access` logger.
How:   Measures wall time around the downstream app and logs method, path,
       status, duration, request id and client IP. Level follows the status:
       5xx → ERROR, 4xx → WARNING, else INFO.
When:  Inside RequestIDMiddleware, so the request id is already set.

Never logged: bodies (passwords, file bytes), Authorization headers, tokens.
Health probes are skipped; they arrive every few seconds.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from babydiary.middleware.request_id import request_id_var

logger = logging.getLogger("babydiary.access")

SKIPPED_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
