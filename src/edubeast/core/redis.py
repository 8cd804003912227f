"""
Redis Configuration

Shared async Redis client used by rate limiting and the action guard.
Redis is optional: callers fall back to in-process state when it is down.
"""

from redis.asyncio import Redis, from_url

from edubeast.core.config import settings

redis_client: Redis | None = None


async def init_redis() -> Redis:
    """
    Initialize the Redis connection.

    Call this on application startup. Raises if the server cannot be pinged.
    """
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await client.ping()
    redis_client = client
    return redis_client


async def get_redis() -> Redis | None:
    """Return the Redis client, or None if Redis was never initialized."""
    return redis_client


async def close_redis() -> None:
    """Close the Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
