"""
TierCache — Local Process Backend

In-process cache with LRU eviction and per-key TTL.
Suitable for single-process deployments and tests; entries die with the process.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Any

from ..interface import MISS, Backend, CacheLookup

logger = logging.getLogger(__name__)


class LocalProcessBackend(Backend):
    """
    Local process cache backend with LRU eviction.

    Features:
    - LRU eviction when max_size is reached
    - Per-key TTL support (0 = no expiry)
    - threading.Lock around every access; safe across threads and event loops
    - O(1) get/set/delete operations
    """

    name = "local-process"

    def __init__(self, max_size: int = 1000) -> None:
        """
        Initialize local process backend.

        Args:
            max_size: Maximum number of entries (LRU eviction when exceeded)
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self.max_size = max_size

        # key -> (value, expiry_time)
        self._cache: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()

        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._evictions = 0

        self._lock = threading.Lock()
        self._closed = False

    @staticmethod
    def _is_expired(expiry: float | None) -> bool:
        if expiry is None:
            return False
        return time.time() > expiry

    async def get(self, key: str) -> CacheLookup:
        """Retrieve value from cache."""
        self._ensure_open()

        with self._lock:
            if key not in self._cache:
                self._misses += 1
                return MISS

            value, expiry = self._cache[key]

            if self._is_expired(expiry):
                del self._cache[key]
                self._misses += 1
                return MISS

            # Mark as recently used
            self._cache.move_to_end(key)
            self._hits += 1
            return CacheLookup(value, True)

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """Store value in cache."""
        self._ensure_open()

        expiry = time.time() + ttl if ttl > 0 else None

        with self._lock:
            # Evict if at capacity and key is new
            if key not in self._cache and len(self._cache) >= self.max_size:
                evicted_key, _ = self._cache.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted key from local process cache: {evicted_key}")

            self._cache[key] = (value, expiry)
            self._cache.move_to_end(key)
            self._sets += 1
            return True

    async def delete(self, key: str) -> None:
        """Delete key from cache."""
        self._ensure_open()

        with self._lock:
            if self._cache.pop(key, None) is not None:
                self._deletes += 1

    async def scan_prefix(self, prefix: str) -> list[str]:
        """List live keys starting with prefix."""
        self._ensure_open()

        with self._lock:
            return [
                k for k, (_, expiry) in self._cache.items() if k.startswith(prefix) and not self._is_expired(expiry)
            ]

    async def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "backend": self.name,
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(hit_rate, 2),
                "sets": self._sets,
                "deletes": self._deletes,
                "evictions": self._evictions,
                "closed": self._closed,
            }

    async def close(self) -> None:
        """Drop all entries; the backend is unusable afterwards."""
        if self._closed:
            return

        with self._lock:
            size = len(self._cache)
            self._cache.clear()
            self._closed = True

        logger.debug(f"Local process cache closed, dropped {size} entries")
