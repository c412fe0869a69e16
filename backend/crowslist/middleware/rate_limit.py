"""
Crowslist Backend — Credential Endpoint Rate Limiting
=======================================================

What:  Per-IP sliding-window limit on the endpoints that take a password or
       a verification code.
Why:   Slows down password guessing and brute-forcing of verification codes.
       Browsing and listing management are not limited.
How:   For each client IP, a list of request timestamps inside the window.
       Timestamps older than the window are dropped on every request; at
       `max_requests` the request is refused with 429 and a Retry-After of
       the seconds until the oldest timestamp leaves the window.

Limited (POST only):
    /api/login  /api/register  /api/verify-email  /api/verify-email/resend

State is per process. Several workers each keep their own windows, so the
effective limit is multiplied by the worker count.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from crowslist.config import settings
from crowslist.exceptions import RateLimitExceededError
from crowslist.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

RATE_LIMITED_PATHS = {
    "/api/login",
    "/api/register",
    "/api/verify-email",
    "/api/verify-email/resend",
}

CLEANUP_EVERY = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Args:
        max_requests: Requests allowed per IP per window
                      (default settings.auth_rate_limit_requests).
        window:       Window length in seconds
                      (default settings.auth_rate_limit_window).
    """

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(app, **kwargs)
        self.max_requests = max_requests or settings.auth_rate_limit_requests
        self.window = window or settings.auth_rate_limit_window
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    def is_limited(self, request: Request) -> bool:
        return request.method == "POST" and request.url.path in RATE_LIMITED_PATHS

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not self.is_limited(request):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - self.window

        timestamps = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = timestamps

        if len(timestamps) >= self.max_requests:
            retry_after = int(timestamps[0] + self.window - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s on %s: %d requests in %ds window",
                client_ip,
                request.url.path,
                len(timestamps),
                self.window,
            )
            # Raised exceptions do not reach FastAPI's handlers from inside
            # BaseHTTPMiddleware, so the 429 body is built here
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(retry_after)},
            )

        timestamps.append(now)

        self._seen += 1
        if self._seen % CLEANUP_EVERY == 0:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for ip in inactive:
            del self._requests[ip]
        if inactive:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive))
