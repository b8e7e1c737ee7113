"""
Health check endpoints.

Liveness never touches Redis; readiness pings it and reports pool usage.
"""

from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ... import __version__

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(request: Request) -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns a simple health status for load balancers and monitoring systems.
    """
    settings = request.app.state.settings
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.OTEL_SERVICE_NAME,
        "version": __version__,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """
    Readiness check endpoint.

    503 while Redis does not answer PING; in that state every fetch fails,
    since fetched bodies cannot be stored.
    """
    store = request.app.state.store
    redis_ok = await store.ping()
    pool = store.pool_stats()

    if not redis_ok:
        logger.warning("readiness_check_failed", dependency="redis")

    return JSONResponse(
        status_code=200 if redis_ok else 503,
        content={
            "status": "ready" if redis_ok else "not_ready",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "redis": {
                    "status": "healthy" if redis_ok else "unhealthy",
                    "pool": pool,
                }
            },
        },
    )
