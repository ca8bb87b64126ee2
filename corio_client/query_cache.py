"""
Read cache over the remote source of truth.

Entries are keyed by tuples such as ("cases",) or ("lesion-trackings", id).
Mutations never merge into cached data: they invalidate, and the next read
goes back to the server. Invalidating a key also invalidates every key that
starts with it, so ("cases",) covers ("cases", "abc").
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[Hashable, ...]


class QueryCache:
    """Time-bounded read cache with prefix invalidation."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[float, Any]] = {}

    def get(self, key: CacheKey, stale_seconds: float) -> Optional[Any]:
        """Return the cached value if it is still fresh."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= stale_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: CacheKey, value: Any):
        self._entries[key] = (self._clock(), value)

    async def fetch(
        self,
        key: CacheKey,
        loader: Callable[[], Awaitable[Any]],
        stale_seconds: float,
    ) -> Any:
        """Return a fresh cached value or load, store and return a new one."""
        cached = self.get(key, stale_seconds)
        if cached is not None:
            logger.debug(f"Cache hit for {key}")
            return cached

        value = await loader()
        self.set(key, value)
        return value

    def invalidate(self, prefix: CacheKey) -> int:
        """Drop every entry whose key starts with ``prefix``. Returns the count dropped."""
        stale = [key for key in self._entries if key[:len(prefix)] == prefix]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(f"Invalidated {len(stale)} cache entries under {prefix}")
        return len(stale)

    def remove(self, key: CacheKey):
        """Drop exactly one entry (used for deleted entities)."""
        self._entries.pop(key, None)

    def clear(self):
        self._entries.clear()

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
