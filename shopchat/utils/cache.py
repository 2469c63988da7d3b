# shopchat/utils/cache.py
from __future__ import annotations
from typing import Awaitable, Callable, Dict, Generic, Optional, Tuple, TypeVar
import logging
import time

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class TenantCache(Generic[T]):
    """
    Process-local memo keyed by tenant domain.

    - ttl_s <= 0 keeps entries for the process lifetime.
    - Loader failures are never stored; the next call retries.
    - No locking: two concurrent misses for one tenant may both run the
      loader. Loaders must be idempotent.
    """

    def __init__(self, name: str, ttl_s: float = 0, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl_s = ttl_s
        self._clock = clock
        self._entries: Dict[str, Tuple[float, T]] = {}

    def _expired(self, stored_at: float) -> bool:
        return self.ttl_s > 0 and (self._clock() - stored_at) >= self.ttl_s

    def peek(self, tenant: str, default=None):
        """Return the live value for tenant without loading."""
        entry = self._entries.get(tenant)
        if entry is None or self._expired(entry[0]):
            return default
        return entry[1]

    def put(self, tenant: str, value: T) -> None:
        self._entries[tenant] = (self._clock(), value)

    async def get_or_load(self, tenant: str, loader: Callable[[], Awaitable[T]]) -> T:
        value = self.peek(tenant, _MISSING)
        if value is not _MISSING:
            logger.debug("%s cache hit tenant=%s", self.name, tenant)
            return value

        logger.debug("%s cache miss tenant=%s", self.name, tenant)
        value = await loader()
        self.put(tenant, value)
        return value

    def invalidate(self, tenant: str) -> bool:
        """Drop one tenant. Returns True when an entry was removed."""
        removed = self._entries.pop(tenant, None) is not None
        if removed:
            logger.info("%s cache invalidated tenant=%s", self.name, tenant)
        return removed

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, tenant: str) -> bool:
        return self.peek(tenant, _MISSING) is not _MISSING
