"""Redis async connection pool, shared by locks and the event publisher."""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis

from shuttle.config import settings

_pool: Optional[aioredis.ConnectionPool] = None


def _get_pool() -> aioredis.ConnectionPool:
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(
            settings.redis_url, decode_responses=True
        )
    return _pool


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    return aioredis.Redis(connection_pool=_get_pool())


async def close_redis() -> None:
    """Drop pooled connections; called from the app lifespan on shutdown."""
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
