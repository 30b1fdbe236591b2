"""
TierCache — Key-Value Store Backend (Redis)

Asynchronous Redis backend with:
- JSON serialization for values
- Per-key TTL via SET ... EX
- SCAN-based prefix listing

Requires: redis>=5.0 with asyncio support

Example:
    backend = KeyValueStoreBackend(redis_url="redis://localhost:6379/0")
    await backend.set("greeting", {"msg": "hello"}, ttl=60)
    lookup = await backend.get("greeting")
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ...errors import BackendUnavailableError
from ..interface import MISS, Backend, CacheLookup

logger = logging.getLogger(__name__)

try:
    from redis.asyncio import Redis
    from redis.exceptions import ConnectionError as RedisConnectionError
    from redis.exceptions import RedisError, ResponseError
    from redis.exceptions import TimeoutError as RedisTimeoutError
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "Redis async client is required but not installed. "
        "Install with: pip install 'redis>=5.0.0' or add 'redis' to your dependencies."
    ) from e


class KeyValueStoreBackend(Backend):
    """
    Redis cache backend with JSON serialization and TTL.

    Notes:
    - Keys are used as given; KeyCodec already namespaces them.
    - Values are stored as UTF-8 JSON strings.
    - The client connects lazily on the first command.
    """

    name = "kv-store"

    def __init__(
        self,
        redis_url: str,
        max_connections: int = 10,
        socket_timeout: int = 5,
        client: Redis | None = None,
    ) -> None:
        """
        Initialize Redis backend.

        Args:
            redis_url: Connection URL, e.g., redis://localhost:6379/0 or rediss:// for TLS
            max_connections: Connection pool size
            socket_timeout: Socket timeout in seconds
            client: Pre-built client (tests, shared pools)
        """
        if not redis_url and client is None:
            raise ValueError("redis_url is required")

        self.redis_url = redis_url
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._closed = False

        self._client = client or Redis.from_url(  # type: ignore[call-overload]
            url=redis_url,
            decode_responses=True,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
        )

    @staticmethod
    def _to_json(value: Any) -> str:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))

    @staticmethod
    def _from_json(data: str | bytes) -> Any:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)

    def _unavailable(self, op: str, key: str, error: Exception) -> BackendUnavailableError:
        logger.warning(
            f"Redis {op} failed for key '{key}': {error}",
            extra={"key": key, "operation": op, "error": str(error)},
        )
        return BackendUnavailableError(self.name, {"operation": op, "key": key, "error": str(error)})

    async def get(self, key: str) -> CacheLookup:
        """Retrieve a value by key."""
        self._ensure_open()

        try:
            data = await self._client.get(key)
        except UnicodeDecodeError as e:
            # decode_responses=True fails on stored bytes that are not UTF-8
            logger.warning(f"Undecodable redis value for key '{key}', treating as miss: {e}", extra={"key": key})
            self._misses += 1
            return MISS
        except (RedisError, OSError) as e:
            raise self._unavailable("get", key, e) from e

        if data is None:
            self._misses += 1
            return MISS

        try:
            value = self._from_json(data)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"Undecodable redis value for key '{key}', treating as miss: {e}", extra={"key": key})
            self._misses += 1
            return MISS

        self._hits += 1
        return CacheLookup(value, True)

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """Store a value; ttl 0 means no expiry."""
        self._ensure_open()

        try:
            payload = self._to_json(value)
        except (TypeError, ValueError) as e:
            logger.error(
                f"Failed to serialize value for key '{key}': {e}",
                extra={"key": key, "value_type": type(value).__name__, "error": str(e)},
            )
            return False

        try:
            # redis-py returns True or 'OK' depending on decode_responses
            res = await self._client.set(name=key, value=payload, ex=ttl if ttl > 0 else None)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise self._unavailable("set", key, e) from e
        except ResponseError as e:
            # Server refused the write (maxmemory, value too large, ...)
            logger.error(
                f"Redis rejected write for key '{key}': {e}",
                extra={"key": key, "ttl": ttl, "error": str(e)},
            )
            return False
        except (RedisError, OSError) as e:
            raise self._unavailable("set", key, e) from e

        success = bool(res)
        if success:
            self._sets += 1
        return success

    async def delete(self, key: str) -> None:
        """Delete a single key."""
        self._ensure_open()

        try:
            deleted = await self._client.delete(key)
        except (RedisError, OSError) as e:
            raise self._unavailable("delete", key, e) from e

        if deleted:
            self._deletes += 1

    async def scan_prefix(self, prefix: str) -> list[str]:
        """SCAN MATCH "<prefix>*" and collect the keys."""
        self._ensure_open()

        try:
            return [k async for k in self._client.scan_iter(match=f"{prefix}*", count=1000)]
        except (RedisError, OSError) as e:
            raise self._unavailable("scan", prefix, e) from e

    async def get_stats(self) -> dict[str, Any]:
        """Return cache statistics and connectivity."""
        total_requests = self._hits + self._misses
        stats: dict[str, Any] = {
            "backend": self.name,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round((self._hits / total_requests) * 100, 2) if total_requests else 0.0,
            "sets": self._sets,
            "deletes": self._deletes,
            "connected": False,
            "closed": self._closed,
        }

        if self._closed:
            return stats

        try:
            stats["connected"] = bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis PING failed: {e}", extra={"error": str(e)})

        return stats

    async def close(self) -> None:
        """Close the Redis client and release resources."""
        if self._closed:
            return
        self._closed = True

        try:
            await self._client.aclose()
            logger.info("Closed Redis cache backend")
        except (RedisError, OSError) as e:
            logger.error(f"Error closing Redis client: {e}", extra={"error": str(e)}, exc_info=True)
        finally:
            try:
                await self._client.connection_pool.disconnect()
            except (RedisError, OSError) as e:
                logger.warning(f"Error disconnecting Redis connection pool: {e}", extra={"error": str(e)})
