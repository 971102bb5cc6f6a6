"""
Redis connection management.

Redis backs:
- the local content store (snapshot, offline items, cached task status)
- the Celery broker/backend
"""

import logging
from typing import Optional

from redis.asyncio import ConnectionPool, Redis

from studypilot.core.config import settings

logger = logging.getLogger(__name__)


def create_redis(url: Optional[str] = None) -> Redis:
    """
    Create an async Redis client with its own connection pool.

    Responses are decoded to str, matching the string-valued key-value
    contract of the local content store.
    """
    pool = ConnectionPool.from_url(
        url or settings.REDIS_URL,
        decode_responses=True,
        max_connections=20,
        socket_connect_timeout=5,
        socket_keepalive=True,
    )
    return Redis(connection_pool=pool)


async def init_redis(url: Optional[str] = None) -> Redis:
    """
    Create a client and verify the connection.

    Called from the application lifespan and Celery worker startup.
    """
    logger.info("Initializing Redis connection pool")
    client = create_redis(url)
    try:
        await client.ping()
        logger.info("Redis connection successful")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        await client.aclose()
        raise
    return client


async def close_redis(client: Optional[Redis]) -> None:
    """Close a client created by init_redis()."""
    if client is None:
        return
    logger.info("Closing Redis connection")
    await client.aclose()
    await client.connection_pool.disconnect()


async def check_redis_health(client: Redis) -> bool:
    """Return True if Redis answers PING."""
    try:
        return await client.ping() is True
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return False
