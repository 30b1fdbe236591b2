"""
TierCache — Test Configuration and Shared Fixtures

Provides pytest configuration and shared fixtures for unit and integration tests.
"""

import asyncio
import os
from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any

import pytest
import pytest_asyncio

from tiercache.cache.interface import MISS, Backend, CacheLookup
from tiercache.cache.manager import CacheManager
from tiercache.cache.registry import BackendRegistry
from tiercache.config import CacheConfig, TierCacheConfig, reset_config
from tiercache.errors import BackendUnavailableError

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"


class FailingBackend(Backend):
    """Backend whose store is always unreachable."""

    name = "failing"

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.close_calls = 0

    async def get(self, key: str) -> CacheLookup:
        self.calls.append("get")
        raise BackendUnavailableError(self.name, {"operation": "get"})

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        self.calls.append("set")
        raise BackendUnavailableError(self.name, {"operation": "set"})

    async def delete(self, key: str) -> None:
        self.calls.append("delete")
        raise BackendUnavailableError(self.name, {"operation": "delete"})

    async def scan_prefix(self, prefix: str) -> list[str]:
        self.calls.append("scan")
        raise BackendUnavailableError(self.name, {"operation": "scan"})

    async def get_stats(self) -> dict[str, Any]:
        return {"backend": self.name, "calls": len(self.calls)}

    async def close(self) -> None:
        self.close_calls += 1


class SlowBackend(Backend):
    """Backend that never answers within any reasonable timeout."""

    name = "slow"

    def __init__(self, delay: float = 5.0) -> None:
        self.delay = delay
        self.cancelled = 0

    async def _stall(self) -> None:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise

    async def get(self, key: str) -> CacheLookup:
        await self._stall()
        return MISS

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        await self._stall()
        return True

    async def delete(self, key: str) -> None:
        await self._stall()

    async def get_stats(self) -> dict[str, Any]:
        return {"backend": self.name, "cancelled": self.cancelled}

    async def close(self) -> None:
        pass


class BrokenCloseBackend(FailingBackend):
    """Backend whose close() itself blows up."""

    name = "broken-close"

    async def close(self) -> None:
        self.close_calls += 1
        raise RuntimeError("close exploded")


@pytest.fixture(autouse=True)
def reset_global_config() -> Generator[None, None, None]:
    """Reset the config singleton after each test to prevent state leakage."""
    yield
    reset_config()


@pytest.fixture
def test_redis_url() -> str:
    """Get Redis URL for testing (database 15 for isolation)."""
    return os.environ.get("TEST_REDIS_URL", "redis://localhost:6379/15")


@pytest.fixture
def fallback_dir(tmp_path: Any) -> str:
    """Temporary directory for the persistent fallback store."""
    path = tmp_path / "fallback"
    path.mkdir()
    return str(path)


@pytest.fixture
def cache_config(fallback_dir: str) -> CacheConfig:
    """local-process primary, temp fallback, fast timeouts."""
    return CacheConfig(
        backend="local-process",
        namespace="test",
        salt="test-salt",
        max_size=100,
        primary_timeout=0.2,
        fallback_timeout=2.0,
        fallback_dir=fallback_dir,
    )


@pytest.fixture
def config(cache_config: CacheConfig) -> TierCacheConfig:
    return TierCacheConfig(environment="test", cache=cache_config)


@pytest_asyncio.fixture
async def manager(config: TierCacheConfig) -> AsyncGenerator[CacheManager, None]:
    """A fresh manager; connections are released after the test."""
    async with CacheManager(config) as cache:
        yield cache


@pytest.fixture
def failing_backend() -> FailingBackend:
    return FailingBackend()


@pytest.fixture
def slow_backend() -> SlowBackend:
    return SlowBackend()


@pytest.fixture
def broken_close_backend() -> BrokenCloseBackend:
    return BrokenCloseBackend()


@pytest.fixture
def manager_with(config: TierCacheConfig) -> Callable[..., CacheManager]:
    """Build a manager around injected backends (config-built ones fill the gaps)."""

    def _build(primary: Backend | None = None, fallback: Backend | None = None) -> CacheManager:
        registry = BackendRegistry(config.cache, primary=primary, fallback=fallback)
        return CacheManager(config, registry=registry)

    return _build


@pytest.fixture
def sample_cache_data() -> dict[str, Any]:
    """Sample data for cache testing."""
    return {
        "simple_string": "hello",
        "simple_int": 42,
        "simple_float": 3.14,
        "simple_bool": True,
        "complex_dict": {
            "nested": {
                "key": "value",
                "number": 123,
                "list": [1, 2, 3],
            }
        },
        "complex_list": [
            {"id": 1, "name": "Alice"},
            {"id": 2, "name": "Bob"},
        ],
    }
