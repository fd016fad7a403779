"""
AssetHub Backend — Health Check Route
======================================

What:  Liveness/readiness probe reporting the Store, cache and event bus.

Status levels:
    healthy   → database reachable, cache and bus healthy (or disabled)  200
    degraded  → database reachable, cache or bus failing                 200
    unhealthy → database unreachable                                      503

A failing cache or bus only degrades latency and freshness; requests are
still answered correctly from the Store, so traffic keeps flowing.
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from assethub import __version__
from assethub.container import ServiceContainer
from assethub.routes.deps import get_container
from assethub.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()

_OK_STATES = {"healthy", "disabled"}


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(container: ServiceContainer = Depends(get_container)):
    db_status = "connected"
    overall = "healthy"

    try:
        await container.database.ping()
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", e)

    cache = await container.cache.health_check()
    event_bus = await container.bus.health_check()
    if overall == "healthy" and (
        cache.get("status") not in _OK_STATES or event_bus.get("status") not in _OK_STATES
    ):
        overall = "degraded"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        cache=cache,
        event_bus=event_bus,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(status_code=503 if overall == "unhealthy" else 200, content=body.model_dump())
