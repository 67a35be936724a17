"""
Dependency injection for FastAPI endpoints.
"""

from typing import AsyncGenerator

import redis.asyncio as redis

from research_feed.config.settings import Settings, get_settings

# Global client instances (initialized on first request)
_redis_client: redis.Redis | None = None


def get_relay_settings() -> Settings:
    """Settings used by relay endpoints (overridable in tests)."""
    return get_settings()


async def get_redis_client() -> AsyncGenerator[redis.Redis, None]:
    """Get the shared Redis client used for health checks."""
    global _redis_client

    if _redis_client is None:
        settings = get_settings()
        _redis_client = redis.from_url(
            str(settings.redis_url),
            encoding="utf-8",
            decode_responses=True,
        )

    yield _redis_client


async def cleanup_dependencies() -> None:
    """Close shared clients on shutdown."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
