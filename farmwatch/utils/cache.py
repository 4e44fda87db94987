# farmwatch/utils/cache.py
"""Per-process request cache with TTL expiry, namespace invalidation and metrics."""

from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Mapping

logger = logging.getLogger(__name__)

NAMESPACE_SEPARATOR = ":"


def make_cache_key(endpoint: str, params: Mapping[str, Any] | None = None) -> str:
    """
    Build a deterministic cache key for an endpoint and its parameters.

    Parameters are serialized with sorted keys, so the same logical request
    yields the same key regardless of dict insertion order.

    Args:
        endpoint: Resource path, e.g. ``/farmers/7/sensors/dashboard``
        params: Query parameters (None is treated as no parameters)

    Returns:
        Key of the form ``"<endpoint>:<canonical json>"``
    """
    payload = json.dumps(dict(params or {}), sort_keys=True, separators=(",", ":"), default=str)
    return f"{endpoint}{NAMESPACE_SEPARATOR}{payload}"


def key_namespace(key: str) -> str:
    """Return the endpoint part of a cache key."""
    return key.split(NAMESPACE_SEPARATOR, 1)[0]


@dataclass(frozen=True)
class CacheEntry:
    """Immutable cached value. Updates replace the entry wholesale."""

    data: Any
    stored_at: float


class RequestCache:
    """Per-process TTL cache keyed by request, with lazy expiry on read."""

    def __init__(
        self,
        *,
        name: str = "requests",
        enabled: bool = True,
        ttl_seconds: float = 30,
        maxsize: int = 128,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the request cache.
        Args:
            name: Label used in logs and statistics
            enabled: Whether the cache is enabled
            ttl_seconds: Time-to-live for cache entries in seconds
            maxsize: Maximum number of entries in the cache
            clock: Monotonic time source (injectable for tests)
        """
        self.name = name
        self.enabled = enabled and ttl_seconds > 0 and maxsize > 0
        self.ttl = ttl_seconds if self.enabled else 0
        self.maxsize = maxsize if self.enabled else 0
        self._clock = clock
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = Lock()

        # Metrics tracking
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: str) -> Any:
        """Get a cached value by key; expired entries are evicted and count as a miss."""
        if not self.enabled:
            self._misses += 1
            return None

        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is not None:
                if now - entry.stored_at < self.ttl:
                    self._hits += 1
                    self._store.move_to_end(key)
                    return entry.data
                self._store.pop(key, None)

        self._misses += 1
        return None

    def set(self, key: str, data: Any) -> None:
        """Store ``data`` under ``key`` stamped with the current time."""
        if not self.enabled:
            return
        with self._lock:
            if data is None:
                self._store.pop(key, None)
                return
            self._store[key] = CacheEntry(data=data, stored_at=self._clock())
            self._store.move_to_end(key)
            if len(self._store) > self.maxsize:
                self._store.popitem(last=False)
                self._evictions += 1

    def invalidate(self, key: str) -> None:
        """Invalidate a specific cache entry by key."""
        with self._lock:
            self._store.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        """
        Remove every entry whose namespace is ``prefix`` or lies beneath it.

        ``/farmers/1`` removes ``/farmers/1`` and ``/farmers/1/sensors/...``
        but never ``/farmers/12``.

        Returns:
            Number of removed entries
        """
        prefix = prefix.rstrip("/")
        with self._lock:
            doomed = [
                key
                for key in self._store
                if key_namespace(key) == prefix or key_namespace(key).startswith(prefix + "/")
            ]
            for key in doomed:
                del self._store[key]
        if doomed:
            logger.debug("Cache '%s' invalidated %d entries under %s", self.name, len(doomed), prefix)
        return len(doomed)

    def clear(self) -> None:
        """Clear the entire cache."""
        with self._lock:
            self._store.clear()

    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics for monitoring.

        Returns:
            Dictionary with cache metrics including:
            - name: Cache label
            - enabled: Whether cache is enabled
            - size: Current number of entries
            - maxsize: Maximum capacity
            - ttl_seconds: Time-to-live for entries
            - hits: Number of cache hits
            - misses: Number of cache misses
            - hit_rate: Cache hit rate percentage (0-100)
            - evictions: Number of evictions due to size limit
        """
        with self._lock:
            size = len(self._store)
            hits = self._hits
            misses = self._misses
            evictions = self._evictions

        total_requests = hits + misses
        hit_rate = (hits / total_requests * 100) if total_requests > 0 else 0.0

        return {
            "name": self.name,
            "enabled": self.enabled,
            "size": size,
            "maxsize": self.maxsize,
            "ttl_seconds": self.ttl,
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hit_rate, 2),
            "evictions": evictions,
        }
