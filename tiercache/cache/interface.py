"""
TierCache — Backend Interface

Defines the abstract interface that every cache backend must implement.
"""

from abc import ABC, abstractmethod
from typing import Any, NamedTuple

from ..errors import BackendUnavailableError


class CacheLookup(NamedTuple):
    """Result of a cache read. Compares equal to a plain (value, found) tuple."""

    value: Any
    found: bool


MISS = CacheLookup(None, False)


class Backend(ABC):
    """
    Abstract base class for cache backends.

    Error contract, shared by all implementations:
    - unreachable, timed-out or closed store -> BackendUnavailableError
    - key not present -> a miss, never an exception
    - store rejects a write (too large, unserializable) -> set() returns False

    Native client exceptions must not leak through any method.
    """

    name: str = "backend"

    _closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        """Raise BackendUnavailableError if close() has already been called."""
        if self._closed:
            raise BackendUnavailableError(self.name, {"reason": "closed"})

    @abstractmethod
    async def get(self, key: str) -> CacheLookup:
        """
        Retrieve a value from the cache.

        Args:
            key: Cache key

        Returns:
            CacheLookup(value, True) on a hit, CacheLookup(None, False) on a miss

        Raises:
            BackendUnavailableError: If the store cannot be reached
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """
        Store a value in the cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (0 = no expiry)

        Returns:
            True if stored, False if the store rejected the write

        Raises:
            BackendUnavailableError: If the store cannot be reached
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Delete a key. Deleting an absent key is not an error.

        Raises:
            BackendUnavailableError: If the store cannot be reached
        """

    @abstractmethod
    async def close(self) -> None:
        """
        Release the connection. Safe to call more than once.
        """

    async def scan_prefix(self, prefix: str) -> list[str]:
        """
        List keys starting with prefix, in no particular order.

        Only the persistent fallback store is required to support this.
        """
        raise NotImplementedError(f"{self.name} backend does not support key scans")

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """
        Get backend statistics.

        Returns:
            Dictionary with counters (hits, misses, sets, deletes) and backend name
        """
