"""
TierCache — Persistent Fallback Backend

File-backed store (diskcache, SQLite + files) that receives every write and
answers reads the primary misses. It survives process restarts and primary
outages, which is its whole purpose.

diskcache is synchronous; calls run in worker threads via asyncio.to_thread.
The cache directory is opened lazily on first use.
"""

from __future__ import annotations

import asyncio
import logging
import pickle
import sqlite3
import threading
from typing import Any

from ...errors import BackendUnavailableError
from ..interface import MISS, Backend, CacheLookup

logger = logging.getLogger(__name__)

try:
    from diskcache import Cache, Timeout
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "diskcache is required for the persistent fallback store. Install with: pip install 'diskcache>=5.6'"
    ) from e

_MISSING = object()

# sqlite lock waits, disk errors and closed-handle errors all mean "store down"
_STORE_ERRORS = (Timeout, sqlite3.Error, OSError)

# Stored values whose class moved or vanished since they were pickled
_DECODE_ERRORS = (pickle.UnpicklingError, AttributeError, ImportError, EOFError, ValueError, TypeError)


class PersistentFallbackBackend(Backend):
    """
    Persistent fallback store backed by a diskcache directory.

    Values are pickled by diskcache, so any picklable object round-trips.
    """

    name = "fallback"

    def __init__(self, directory: str, timeout: float = 1.0) -> None:
        """
        Initialize the fallback store.

        Args:
            directory: Directory holding the cache database and value files
            timeout: SQLite lock timeout in seconds
        """
        self.directory = directory
        self.timeout = timeout
        self._cache: Cache | None = None
        self._open_lock = threading.Lock()
        self._closed = False

        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

    def _get_cache(self) -> Cache:
        """Open the cache directory on first use (runs in a worker thread)."""
        with self._open_lock:
            if self._cache is None:
                self._cache = Cache(self.directory, timeout=self.timeout)
                logger.info(f"Opened fallback store at {self.directory}")
            return self._cache

    def _unavailable(self, op: str, key: str, error: Exception) -> BackendUnavailableError:
        logger.warning(
            f"Fallback store {op} failed for key '{key}': {error}",
            extra={"key": key, "operation": op, "directory": self.directory, "error": str(error)},
        )
        return BackendUnavailableError(self.name, {"operation": op, "key": key, "error": str(error)})

    def _get_sync(self, key: str) -> Any:
        return self._get_cache().get(key, default=_MISSING, retry=True)

    def _set_sync(self, key: str, value: Any, ttl: int) -> bool:
        return self._get_cache().set(key, value, expire=ttl if ttl > 0 else None, retry=True)

    def _delete_sync(self, key: str) -> bool:
        return self._get_cache().delete(key, retry=True)

    def _scan_sync(self, prefix: str) -> list[str]:
        cache = self._get_cache()
        # Drop expired rows so they are not reported
        cache.expire()
        return [k for k in cache.iterkeys() if isinstance(k, str) and k.startswith(prefix)]

    async def get(self, key: str) -> CacheLookup:
        self._ensure_open()

        try:
            value = await asyncio.to_thread(self._get_sync, key)
        except _STORE_ERRORS as e:
            raise self._unavailable("get", key, e) from e
        except _DECODE_ERRORS as e:
            logger.warning(
                f"Undecodable fallback value for key '{key}', dropping it: {e}",
                extra={"key": key, "directory": self.directory, "error": str(e)},
            )
            await self._discard(key)
            self._misses += 1
            return MISS

        if value is _MISSING:
            self._misses += 1
            return MISS

        self._hits += 1
        return CacheLookup(value, True)

    async def _discard(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, key)
        except _STORE_ERRORS as e:
            logger.warning(f"Could not drop undecodable fallback key '{key}': {e}", extra={"key": key, "error": str(e)})

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        self._ensure_open()

        try:
            stored = await asyncio.to_thread(self._set_sync, key, value, ttl)
        except _STORE_ERRORS as e:
            raise self._unavailable("set", key, e) from e
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            logger.error(
                f"Fallback store rejected value for key '{key}': {e}",
                extra={"key": key, "value_type": type(value).__name__, "error": str(e)},
            )
            return False

        if stored:
            self._sets += 1
        return bool(stored)

    async def delete(self, key: str) -> None:
        self._ensure_open()

        try:
            deleted = await asyncio.to_thread(self._delete_sync, key)
        except _STORE_ERRORS as e:
            raise self._unavailable("delete", key, e) from e

        if deleted:
            self._deletes += 1

    async def scan_prefix(self, prefix: str) -> list[str]:
        """List stored keys that start with prefix."""
        self._ensure_open()

        try:
            return await asyncio.to_thread(self._scan_sync, prefix)
        except _STORE_ERRORS as e:
            raise self._unavailable("scan", prefix, e) from e

    async def get_stats(self) -> dict[str, Any]:
        total_requests = self._hits + self._misses
        return {
            "backend": self.name,
            "directory": self.directory,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round((self._hits / total_requests) * 100, 2) if total_requests else 0.0,
            "sets": self._sets,
            "deletes": self._deletes,
            "opened": self._cache is not None,
            "closed": self._closed,
        }

    async def close(self) -> None:
        """Close the underlying database handles."""
        if self._closed:
            return
        self._closed = True

        if self._cache is None:
            return

        try:
            await asyncio.to_thread(self._cache.close)
            logger.info(f"Closed fallback store at {self.directory}")
        except _STORE_ERRORS as e:
            logger.error(f"Error closing fallback store: {e}", extra={"error": str(e)}, exc_info=True)
