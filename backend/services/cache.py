"""
Read-through TTL cache for slow-changing sources (meeting workbook, roster).

Entries are immutable. A refresh builds a new entry map and swaps it in,
so readers never observe a half-written entry. On a miss, loading is
serialized per key by an asyncio.Lock with a second check under the lock.
A loader that raises leaves the cache untouched.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CacheEntry:
    value: Any
    expires_at: float


class SourceCache:
    """
    Per-key TTL cache shared across requests.

    Args:
        ttl_seconds: Lifetime of an entry. A value <= 0 disables caching.
        clock: Monotonic clock; injectable for tests.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _fresh(self, key: str) -> Optional[_CacheEntry]:
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at > self._clock():
            return entry
        return None

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def get_or_refresh(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value for ``key``, loading it on miss or expiry.

        Exceptions from ``loader`` propagate and nothing is cached.
        """
        if self.ttl_seconds <= 0:
            return await loader()

        entry = self._fresh(key)
        if entry is not None:
            return entry.value

        async with self._lock_for(key):
            entry = self._fresh(key)
            if entry is not None:
                return entry.value

            value = await loader()
            updated = dict(self._entries)
            updated[key] = _CacheEntry(value=value, expires_at=self._clock() + self.ttl_seconds)
            self._entries = updated
            logger.debug(f"Cache refreshed for '{key}' (ttl={self.ttl_seconds}s)")
            return value

    def invalidate(self, key: str) -> None:
        if key in self._entries:
            updated = dict(self._entries)
            del updated[key]
            self._entries = updated

    def clear(self) -> None:
        self._entries = {}

    def __contains__(self, key: str) -> bool:
        return self._fresh(key) is not None


__all__ = ['SourceCache']
