"""
Memo Bridge Backend — Request Logging Middleware
=================================================

What:  One access log line per request: method, path, status, duration, id.
When:  Runs inside RequestIDMiddleware, so the id is already set.

What we log vs what we DON'T log:
    Log:       method, path, status, duration, client IP, request id
    Don't log: request body (memo text), Authorization header, cookies
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from memo_bridge.middleware.request_id import request_id_var

logger = logging.getLogger("memo_bridge.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request with a level chosen by status class:
        5xx → ERROR, 4xx → WARNING, otherwise INFO

    OPTIONS preflights are passed through without a log line.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method == "OPTIONS":
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        path = request.url.path
        rid = request_id_var.get("")

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
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
        )

        return response
