"""
Crowslist Backend — Request ID Middleware
===========================================

What:  Gives every request a short correlation id and echoes it back in the
       X-Request-ID response header.
Why:   Error bodies carry the same id, so a user-reported failure can be
       matched to its log lines.
How:   A client-supplied X-Request-ID is reused; otherwise 8 hex chars of a
       uuid4. The id is kept in a ContextVar (one value per coroutine) and
       on request.state.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "")[:MAX_CLIENT_ID_LENGTH]
        if not rid:
            rid = uuid.uuid4().hex[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
