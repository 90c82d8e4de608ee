"""
Redis-based distributed lock.

Used by the ledger reconciliation worker so that only one API process runs
a reconciliation cycle at a time.  Booking and settlement never use it:
their mutual exclusion comes from row locks inside the unit of work.

Acquire is ``SET NX EX``; release is an atomic compare-and-delete (Lua) so
a lock that expired and was re-taken by another process is left alone.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(RuntimeError):
    pass


class DistributedLock:
    def __init__(self, client: aioredis.Redis, name: str, ttl_seconds: int = 60):
        self.redis = client
        self.key = f"lock:{name}"
        self.ttl = ttl_seconds
        self.token = uuid.uuid4().hex
        self.held = False

    async def acquire(self) -> bool:
        """Try once; returns True if this instance now owns the lock."""
        self.held = bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )
        return self.held

    async def release(self) -> bool:
        if not self.held:
            return False
        self.held = False
        return bool(await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token))

    async def __aenter__(self) -> "DistributedLock":
        if not await self.acquire():
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *exc) -> None:
        await self.release()
