"""
Redis-based distributed lock.

Every API process runs the cleanup scheduler, so the daily sweep takes
this lock first and instances that lose the race skip the run.

SET NX EX acquires; a Lua script releases only while the stored token
is still ours, so an expired-then-reacquired lock is never deleted by
its previous owner.
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
    """Raised by ``async with`` when another holder owns the lock."""


class DistributedLock:
    def __init__(self, client: aioredis.Redis, name: str, ttl_seconds: int = 300):
        self.redis = client
        self.key = f"peerride:lock:{name}"
        self.ttl = ttl_seconds
        self.token = uuid.uuid4().hex
        self.held = False

    async def acquire(self) -> bool:
        """Try once to take the lock. Returns True on success."""
        self.held = bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )
        return self.held

    async def release(self) -> None:
        if not self.held:
            return
        await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)
        self.held = False

    async def __aenter__(self) -> "DistributedLock":
        if not await self.acquire():
            raise LockNotAcquired(f"Lock {self.key} is held by another instance")
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.release()
