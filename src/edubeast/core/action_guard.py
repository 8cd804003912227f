"""
In-flight Action Guard

Prevents the same action from running twice at once (e.g. a double-clicked
"Approve" button). The first caller acquires a short-lived lock; concurrent
callers for the same key are refused until it is released.

Redis ``SET NX EX`` is used when available so the guard holds across
workers. Otherwise an in-process set is used.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from redis.exceptions import RedisError

from edubeast.core import redis as redis_module
from edubeast.core.config import settings
from edubeast.core.exceptions import ActionInProgressError

logger = logging.getLogger(__name__)

_KEY_PREFIX = "action_guard:"

# Only compare-and-delete our own token
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""

_memory_locks: set[str] = set()

REDIS_BACKEND = "redis"
MEMORY_BACKEND = "memory"


async def _acquire(key: str, token: str, ttl_seconds: int) -> str | None:
    """Take the lock and return the backend holding it, or None if it is held."""
    client = redis_module.redis_client
    if client is not None:
        try:
            if await client.set(key, token, nx=True, ex=ttl_seconds):
                return REDIS_BACKEND
            return None
        except RedisError as e:
            logger.warning(f"Redis action guard unavailable, using memory: {e}")

    if key in _memory_locks:
        return None
    _memory_locks.add(key)
    return MEMORY_BACKEND


async def _release(key: str, token: str, backend: str) -> None:
    if backend == MEMORY_BACKEND:
        _memory_locks.discard(key)
        return

    client = redis_module.redis_client
    if client is None:
        return
    try:
        await client.eval(_RELEASE_SCRIPT, 1, key, token)
    except RedisError as e:
        # The TTL releases it eventually
        logger.warning(f"Failed to release action guard {key}: {e}")


@asynccontextmanager
async def action_guard(name: str, ttl_seconds: int | None = None) -> AsyncIterator[None]:
    """
    Hold an exclusive lock on ``name`` for the duration of the block.

    Args:
        name: Action key, e.g. ``"user_applications:decide:<id>"``
        ttl_seconds: Lock expiry, defaults to ACTION_GUARD_TTL_SECONDS

    Raises:
        ActionInProgressError: If the key is already held
    """
    key = f"{_KEY_PREFIX}{name}"
    token = uuid.uuid4().hex
    ttl = ttl_seconds or settings.action_guard_ttl_seconds

    backend = await _acquire(key, token, ttl)
    if backend is None:
        logger.info(f"Refused duplicate in-flight action: {name}")
        raise ActionInProgressError(name)

    try:
        yield
    finally:
        await _release(key, token, backend)
