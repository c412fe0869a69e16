"""
Crowslist Backend — Health Check Route
========================================

What:  Liveness/readiness check for Docker and load balancers.
How:   SELECT 1 through the gateway. Every endpoint except /health needs the
       database, so an unreachable database means "unhealthy" (HTTP 503).
"""

import logging
import time

from fastapi import APIRouter, Depends, Response

from crowslist import __version__
from crowslist.database import Database
from crowslist.deps import get_database, get_session_store
from crowslist.schemas.common import HealthResponse
from crowslist.services.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(
    response: Response,
    database: Database = Depends(get_database),
    store: SessionStore = Depends(get_session_store),
) -> HealthResponse:
    store.purge_expired()
    connected = await database.ping()
    if not connected:
        response.status_code = 503
        logger.warning("Health check: database unreachable")

    return HealthResponse(
        status="healthy" if connected else "unhealthy",
        version=__version__,
        database="connected" if connected else "disconnected",
        backend=database.backend,
        active_sessions=len(store),
        uptime_seconds=round(time.time() - _start_time, 2),
    )
