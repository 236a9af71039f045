"""
Quillpost Backend — Health Check Route
=======================================

What:  GET /health for container health checks and load balancer probes.
How:   Asks the DatabaseContext on app.state for a SELECT 1 round trip.
Who:   Docker health checks, load balancers, monitoring.

Status levels:
    healthy:   database reachable (HTTP 200)
    unhealthy: database unreachable (HTTP 503, stop routing traffic)
"""

import logging
import time

from fastapi import APIRouter, Request, Response

from quillpost import __version__
from quillpost.schemas.draft import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    db = getattr(request.app.state, "db", None)
    connected = db is not None and await db.health_check()

    if not connected:
        logger.warning("Health check: database unreachable")
        response.status_code = 503

    return HealthResponse(
        status="healthy" if connected else "unhealthy",
        version=__version__,
        database="connected" if connected else "disconnected",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
