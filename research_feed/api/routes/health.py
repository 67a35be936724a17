"""
Health check endpoint.
"""

import time

import structlog
from fastapi import APIRouter, Depends

from research_feed import __version__
from research_feed.api.dependencies import get_redis_client, get_relay_settings
from research_feed.api.models import ComponentHealth, HealthResponse
from research_feed.config.settings import Settings

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_redis(redis_client) -> ComponentHealth:
    """Check Redis connectivity and measure latency."""
    start = time.perf_counter()
    try:
        await redis_client.ping()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="healthy",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.warning("Redis health check failed", error=str(e))
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the relay and its document store.",
)
async def health_check(
    settings: Settings = Depends(get_relay_settings),
    redis_client=Depends(get_redis_client),
) -> HealthResponse:
    """
    Status logic:
    - degraded: the Redis document store is unreachable
    - healthy: otherwise (the memory backend needs no check)
    """
    components: dict[str, ComponentHealth] = {}
    status = "healthy"

    if settings.document_store_backend == "redis":
        components["redis"] = await _check_redis(redis_client)
        if components["redis"].status == "unhealthy":
            status = "degraded"

    return HealthResponse(
        status=status,
        document_store_backend=settings.document_store_backend,
        upstreams_configured={
            "nyt": bool(settings.nyt_api_keys),
            "guardian": bool(settings.guardian_api_keys),
            "congress": bool(settings.congress_api_keys),
            "bluesky": settings.bluesky_configured,
        },
        components=components,
        version=__version__,
    )
