# shopchat/utils/locks.py
from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional
from redis.asyncio import Redis
import uuid, asyncio


class KeyedLock:
    """
    One asyncio.Lock per key, created on demand and dropped once nobody
    holds or waits for it. Serializes coroutines of a single process.
    """
    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


class RedisLock:
    """
    Simple, single-instance lock using SET NX EX.
    Serializes the same session across worker processes.
    """
    def __init__(self, redis: Redis, key: str, ttl: int = 20):
        self.redis = redis
        self.key = f"lock:{key}"
        self.ttl = ttl
        self._token: Optional[str] = None

    async def acquire(self) -> bool:
        token = uuid.uuid4().hex
        ok = await self.redis.set(self.key, token, nx=True, ex=self.ttl)
        if ok:
            self._token = token
            return True
        return False

    async def acquire_wait(self, timeout: float, interval: float = 0.1) -> bool:
        """Retry acquire() until it succeeds or timeout seconds elapse."""
        for _ in range(max(1, int(timeout / interval))):
            if await self.acquire():
                return True
            await asyncio.sleep(interval)
        return False

    async def release(self) -> None:
        # only delete our own lock; it may have expired and been re-taken
        if self._token is None:
            return
        current = await self.redis.get(self.key)
        if current == self._token:
            await self.redis.delete(self.key)
        self._token = None
