"""
Crowslist Backend — Request Logging Middleware
================================================

What:  One access-log line per request on the `crowslist.access` logger.
How:   Measures wall time around the downstream call and picks the level
       from the status: 5xx → ERROR, 4xx → WARNING, otherwise INFO.

Logged: method, path, status, duration, request id, client IP.
Never logged: bodies, query strings, cookies. Those carry passwords,
verification codes and session tokens.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from crowslist.middleware.request_id import request_id_var

logger = logging.getLogger("crowslist.access")

QUIET_PATHS = {"/health"}


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

        fields = {
            "request_id": request_id_var.get(""),
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": elapsed_ms,
            "client_ip": request.client.host if request.client else "unknown",
        }
        logger.log(
            level_for_status(response.status_code),
            "%(method)s %(path)s %(status)d %(duration_ms)sms [%(request_id)s] from %(client_ip)s",
            fields,
            extra=fields,
        )
        return response
