"""
Redis client factory and rate-limit store selection.
"""

import redis.asyncio as aioredis
import structlog

from app.core.config import Settings, get_settings
from app.core.rate_limit import InMemoryRateLimitStore, RateLimitStore, RedisRateLimitStore

logger = structlog.get_logger(__name__)


def create_redis_client(settings: Settings | None = None) -> aioredis.Redis:
    settings = settings or get_settings()
    pool = aioredis.ConnectionPool.from_url(
        settings.REDIS_DSN,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=5.0,
        retry_on_timeout=True,
        health_check_interval=30,
        decode_responses=True,
    )
    return aioredis.Redis(connection_pool=pool)


def create_rate_limit_store(settings: Settings | None = None) -> RateLimitStore:
    """Build the store named by RATE_LIMIT_BACKEND."""
    settings = settings or get_settings()
    if settings.RATE_LIMIT_BACKEND == "redis":
        logger.info("Using Redis rate-limit store")
        return RedisRateLimitStore(create_redis_client(settings))
    logger.info("Using in-memory rate-limit store")
    return InMemoryRateLimitStore()
