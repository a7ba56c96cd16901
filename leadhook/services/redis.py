from __future__ import annotations

import asyncio
from typing import Any, Dict

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from leadhook.core.config import Settings
from leadhook.core.logging import get_structlog_logger

logger = get_structlog_logger(__name__)


def create_redis_client(settings: Settings) -> redis.Redis:
    """Build a pooled Redis client. Connections are opened lazily on first command."""
    retry = Retry(
        backoff=ExponentialBackoff(base=1, cap=3),
        retries=3,
    )

    pool = ConnectionPool.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
        retry=retry,
        retry_on_error=[redis.ConnectionError, redis.TimeoutError],
        health_check_interval=30,
        decode_responses=True,
    )

    logger.info(
        "redis.client_created",
        max_connections=settings.redis_max_connections,
    )
    return redis.Redis(connection_pool=pool)


async def close_redis_client(client: redis.Redis) -> None:
    await client.aclose()
    logger.info("redis.connections_closed")


async def health_check(client: redis.Redis) -> Dict[str, Any]:
    """Check Redis health."""
    loop = asyncio.get_running_loop()
    try:
        start_time = loop.time()
        pong = await client.ping()
        response_time = (loop.time() - start_time) * 1000

        if not pong:
            return {
                "status": "unhealthy",
                "error": "Ping failed",
                "response_time_ms": response_time,
            }

        return {
            "status": "healthy",
            "response_time_ms": response_time,
        }

    except Exception as e:
        logger.error("redis.health_check_failed", error=str(e))
        return {
            "status": "unhealthy",
            "error": str(e),
            "response_time_ms": None,
        }
