"""Response cache for provider calls.

Entries are keyed by (endpoint, normalized symbol, params) and expire
lazily: an expired entry is ignored on read and overwritten on the next
miss, never purged in the background. The cache is unbounded.

There is no locking. Callers only touch the cache from the event loop
thread; if it is ever shared across OS threads, wrap it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Hashable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, tuple[tuple[str, Any], ...]]


def make_key(endpoint: str, symbol: str = "", params: dict[str, Any] | None = None) -> CacheKey:
    """Build a cache key from an endpoint, symbol and extra params.

    The symbol is upper-cased and stripped so "aapl " and "AAPL" share an
    entry. Params are sorted so argument order does not matter.
    """
    items = tuple(sorted((params or {}).items()))
    return (endpoint, symbol.strip().upper(), items)


class ResponseCache(Protocol):
    """Interface for caching provider responses."""

    def get(self, key: Hashable) -> Any | None:
        """Return the cached value, or None on a miss or expired entry."""
        ...

    def set(self, key: Hashable, value: Any) -> None:
        """Store a value under key, stamped with the current time."""
        ...

    def clear(self) -> None:
        """Drop all entries."""
        ...


class InMemoryResponseCache:
    """Process-local key -> (value, timestamp) map with a fixed TTL.

    Args:
        ttl_minutes: Entry lifetime in minutes.
        clock: Monotonic time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        ttl_minutes: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_minutes * 60
        self._clock = clock
        self._entries: dict[Hashable, tuple[Any, float]] = {}

    def get(self, key: Hashable) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache miss: %s", key)
            return None

        value, stored_at = entry
        if self._clock() - stored_at >= self._ttl_seconds:
            logger.debug("Cache expired: %s", key)
            return None

        logger.debug("Cache hit: %s", key)
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (value, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


_shared_caches: dict[float, InMemoryResponseCache] = {}


def shared_cache(ttl_minutes: float) -> InMemoryResponseCache:
    """Return the process-wide cache for the given TTL.

    Lives until the process exits; nothing is persisted.
    """
    cache = _shared_caches.get(ttl_minutes)
    if cache is None:
        cache = InMemoryResponseCache(ttl_minutes)
        _shared_caches[ttl_minutes] = cache
    return cache


def clear_shared_caches() -> None:
    """Empty every process-wide cache (useful between tests)."""
    for cache in _shared_caches.values():
        cache.clear()
