"""
TierCache — Key-Value Store (Redis) Backend Tests

Error translation is tested against a mocked client and always runs.
The live tests need a Redis server on localhost:6379 (or TEST_REDIS_URL).
"""

import socket
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from tiercache.cache.backends.redis import KeyValueStoreBackend
from tiercache.errors import BackendUnavailableError

# Check if Redis is available
try:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(1)
    redis_available = sock.connect_ex(("localhost", 6379)) == 0
    sock.close()
except OSError:
    redis_available = False


@pytest.fixture
def mock_client() -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    client.connection_pool.disconnect = AsyncMock()
    return client


@pytest.fixture
def backend(mock_client: MagicMock) -> KeyValueStoreBackend:
    return KeyValueStoreBackend(redis_url="redis://unused", client=mock_client)


class TestRedisErrorTranslation:
    """Native redis errors never leak out of the adapter."""

    def test_requires_url_or_client(self) -> None:
        with pytest.raises(ValueError):
            KeyValueStoreBackend(redis_url="")

    async def test_hit_decodes_json(self, backend: KeyValueStoreBackend, mock_client: MagicMock) -> None:
        mock_client.get.return_value = '{"name":"Jane"}'
        assert await backend.get("k") == ({"name": "Jane"}, True)

    async def test_miss(self, backend: KeyValueStoreBackend) -> None:
        assert await backend.get("k") == (None, False)

    async def test_non_json_payload_is_a_miss(self, backend: KeyValueStoreBackend, mock_client: MagicMock) -> None:
        mock_client.get.return_value = "plain text"
        assert await backend.get("k") == (None, False)
        assert (await backend.get_stats())["misses"] == 1

    async def test_non_utf8_payload_is_a_miss(self, backend: KeyValueStoreBackend, mock_client: MagicMock) -> None:
        # decode_responses=True makes the client itself fail on raw bytes
        mock_client.get.side_effect = UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte")
        assert await backend.get("k") == (None, False)

    @pytest.mark.parametrize("error", [RedisConnectionError("down"), RedisTimeoutError("slow"), OSError("reset")])
    async def test_get_connection_errors(
        self, backend: KeyValueStoreBackend, mock_client: MagicMock, error: Exception
    ) -> None:
        mock_client.get.side_effect = error
        with pytest.raises(BackendUnavailableError) as exc_info:
            await backend.get("k")
        assert exc_info.value.backend == "kv-store"
        assert exc_info.value.__cause__ is error

    async def test_set_uses_ttl_seconds(self, backend: KeyValueStoreBackend, mock_client: MagicMock) -> None:
        assert await backend.set("k", [1, 2], ttl=3600) is True
        mock_client.set.assert_awaited_once_with(name="k", value="[1,2]", ex=3600)

    async def test_set_ttl_zero_means_no_expiry(self, backend: KeyValueStoreBackend, mock_client: MagicMock) -> None:
        await backend.set("k", "v", ttl=0)
        assert mock_client.set.await_args.kwargs["ex"] is None

    async def test_set_rejected_by_server(self, backend: KeyValueStoreBackend, mock_client: MagicMock) -> None:
        mock_client.set.side_effect = ResponseError("OOM command not allowed")
        assert await backend.set("k", "v", ttl=60) is False

    async def test_set_unserializable_value(self, backend: KeyValueStoreBackend, mock_client: MagicMock) -> None:
        assert await backend.set("k", {1, 2, 3}, ttl=60) is False
        mock_client.set.assert_not_awaited()

    async def test_set_connection_error(self, backend: KeyValueStoreBackend, mock_client: MagicMock) -> None:
        mock_client.set.side_effect = RedisConnectionError("down")
        with pytest.raises(BackendUnavailableError):
            await backend.set("k", "v", ttl=60)

    async def test_delete_connection_error(self, backend: KeyValueStoreBackend, mock_client: MagicMock) -> None:
        mock_client.delete.side_effect = RedisConnectionError("down")
        with pytest.raises(BackendUnavailableError):
            await backend.delete("k")

    async def test_close_is_idempotent(self, backend: KeyValueStoreBackend, mock_client: MagicMock) -> None:
        await backend.close()
        await backend.close()

        mock_client.aclose.assert_awaited_once()
        with pytest.raises(BackendUnavailableError):
            await backend.get("k")

    async def test_stats_report_connectivity(self, backend: KeyValueStoreBackend) -> None:
        stats = await backend.get_stats()
        assert stats["backend"] == "kv-store"
        assert stats["connected"] is True


@pytest.mark.skipif(not redis_available, reason="Redis server not available")
class TestRedisLive:
    """Round trips against a real Redis server."""

    @pytest.fixture
    async def cache(self, test_redis_url: str) -> AsyncGenerator[KeyValueStoreBackend, None]:
        cache = KeyValueStoreBackend(redis_url=test_redis_url, max_connections=5, socket_timeout=2)
        for key in await cache.scan_prefix("tiercache-test:"):
            await cache.delete(key)
        yield cache
        for key in await cache.scan_prefix("tiercache-test:"):
            await cache.delete(key)
        await cache.close()

    async def test_round_trip(self, cache: KeyValueStoreBackend, sample_cache_data: dict[str, Any]) -> None:
        for key, value in sample_cache_data.items():
            assert await cache.set(f"tiercache-test:{key}", value, ttl=60) is True

        for key, expected in sample_cache_data.items():
            assert await cache.get(f"tiercache-test:{key}") == (expected, True)

    async def test_delete_and_scan(self, cache: KeyValueStoreBackend) -> None:
        await cache.set("tiercache-test:a", 1, ttl=60)
        await cache.set("tiercache-test:b", 2, ttl=60)

        assert sorted(await cache.scan_prefix("tiercache-test:")) == ["tiercache-test:a", "tiercache-test:b"]

        await cache.delete("tiercache-test:a")
        await cache.delete("tiercache-test:a")
        assert (await cache.get("tiercache-test:a")).found is False
