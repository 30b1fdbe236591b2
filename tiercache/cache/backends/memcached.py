"""
TierCache — Distributed Memory Backend (Memcached)

Memcached backend built on pymemcache's pooled client. pymemcache is
synchronous, so each command runs in a worker thread via asyncio.to_thread.

Requires: pymemcache>=4.0

Example:
    backend = DistributedMemoryBackend(server="localhost:11211")
    await backend.set("greeting", {"msg": "hello"}, ttl=60)
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

from ...errors import BackendUnavailableError
from ..interface import MISS, Backend, CacheLookup

logger = logging.getLogger(__name__)

try:
    from pymemcache.client.base import PooledClient
    from pymemcache.exceptions import (
        MemcacheClientError,
        MemcacheError,
        MemcacheServerError,
        MemcacheUnexpectedCloseError,
    )
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "pymemcache is required for the memory-distributed backend. Install with: pip install 'pymemcache>=4.0'"
    ) from e

# Memcached reads expirations above 30 days as absolute Unix timestamps
MAX_RELATIVE_EXPIRE = 30 * 24 * 60 * 60


def parse_server(server: str) -> tuple[str, int]:
    """Split "host:port" into a (host, port) tuple; the port defaults to 11211."""
    host, _, port = server.rpartition(":")
    if not host:
        return server, 11211
    return host, int(port)


class DistributedMemoryBackend(Backend):
    """
    Memcached cache backend with JSON serialization.

    Notes:
    - Memcached cannot enumerate keys, so scan_prefix is unsupported.
    - Writes are acknowledged (noreply disabled) so rejected writes report False.
    """

    name = "memory-distributed"

    def __init__(
        self,
        server: str = "localhost:11211",
        connect_timeout: float = 1.0,
        timeout: float = 1.0,
        max_pool_size: int = 10,
        client: Any | None = None,
    ) -> None:
        """
        Initialize memcached backend.

        Args:
            server: Memcached server as host:port
            connect_timeout: Socket connect timeout in seconds
            timeout: Socket read/write timeout in seconds
            max_pool_size: Maximum pooled connections
            client: Pre-built client with the pymemcache interface (tests)
        """
        self.server = server
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._closed = False

        # Connects lazily on the first command
        self._client = client or PooledClient(
            parse_server(server),
            connect_timeout=connect_timeout,
            timeout=timeout,
            max_pool_size=max_pool_size,
            default_noreply=False,
            no_delay=True,
        )

    @staticmethod
    def _expire(ttl: int) -> int:
        if ttl > MAX_RELATIVE_EXPIRE:
            return int(time.time()) + ttl
        return max(0, ttl)

    def _unavailable(self, op: str, key: str, error: Exception) -> BackendUnavailableError:
        logger.warning(
            f"Memcached {op} failed for key '{key}': {error}",
            extra={"key": key, "operation": op, "server": self.server, "error": str(error)},
        )
        return BackendUnavailableError(self.name, {"operation": op, "key": key, "error": str(error)})

    async def get(self, key: str) -> CacheLookup:
        """Retrieve a value by key."""
        self._ensure_open()

        try:
            data = await asyncio.to_thread(self._client.get, key)
        except (MemcacheError, OSError) as e:
            raise self._unavailable("get", key, e) from e

        if data is None:
            self._misses += 1
            return MISS

        try:
            value = json.loads(data)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"Undecodable memcached value for key '{key}', treating as miss: {e}", extra={"key": key})
            self._misses += 1
            return MISS

        self._hits += 1
        return CacheLookup(value, True)

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """Store a value; TTLs over 30 days are sent as absolute timestamps."""
        self._ensure_open()

        try:
            payload = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            logger.error(
                f"Failed to serialize value for key '{key}': {e}",
                extra={"key": key, "value_type": type(value).__name__, "error": str(e)},
            )
            return False

        try:
            stored = await asyncio.to_thread(self._client.set, key, payload, expire=self._expire(ttl))
        except (MemcacheUnexpectedCloseError, OSError) as e:
            raise self._unavailable("set", key, e) from e
        except (MemcacheServerError, MemcacheClientError) as e:
            # e.g. "SERVER_ERROR object too large for cache"
            logger.error(
                f"Memcached rejected write for key '{key}': {e}",
                extra={"key": key, "ttl": ttl, "error": str(e)},
            )
            return False
        except MemcacheError as e:
            raise self._unavailable("set", key, e) from e

        if stored:
            self._sets += 1
        return bool(stored)

    async def delete(self, key: str) -> None:
        """Delete a key; memcached reports absent keys as not deleted, which is fine."""
        self._ensure_open()

        try:
            deleted = await asyncio.to_thread(self._client.delete, key)
        except (MemcacheError, OSError) as e:
            raise self._unavailable("delete", key, e) from e

        if deleted:
            self._deletes += 1

    async def get_stats(self) -> dict[str, Any]:
        total_requests = self._hits + self._misses
        return {
            "backend": self.name,
            "server": self.server,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round((self._hits / total_requests) * 100, 2) if total_requests else 0.0,
            "sets": self._sets,
            "deletes": self._deletes,
            "closed": self._closed,
        }

    async def close(self) -> None:
        """Close pooled connections."""
        if self._closed:
            return
        self._closed = True

        try:
            await asyncio.to_thread(self._client.close)
            logger.info(f"Closed memcached backend for {self.server}")
        except (MemcacheError, OSError) as e:
            logger.error(f"Error closing memcached client: {e}", extra={"error": str(e)}, exc_info=True)
