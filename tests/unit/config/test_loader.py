"""
TierCache — Configuration Tests

Environment variable loading, .env files and validation failures.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from tiercache.config import (
    BackendKind,
    CacheConfig,
    TierCacheConfig,
    TTLClass,
    get_config,
    load_config,
    reload_config,
)
from tiercache.config.schemas import ONE_HOUR_SECONDS, ONE_YEAR_SECONDS
from tiercache.errors import ConfigurationError, UnsupportedBackendError

_CACHE_VARS = (
    "CACHE_BACKEND",
    "CACHE_NAMESPACE",
    "CACHE_SALT",
    "CACHE_AUTH_KEY",
    "CACHE_SECURE_AUTH_SALT",
    "CACHE_TTL_STATIC",
    "CACHE_TTL_DYNAMIC",
    "CACHE_MAX_SIZE",
    "REDIS_URL",
    "MEMCACHED_SERVER",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    """Start from an environment without cache variables, outside any .env."""
    for name in _CACHE_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestCacheConfig:
    def test_defaults(self) -> None:
        config = CacheConfig()

        assert config.backend == BackendKind.LOCAL_PROCESS.value
        assert config.namespace == "cache"
        assert config.ttl_static == ONE_YEAR_SECONDS
        assert config.ttl_dynamic == ONE_HOUR_SECONDS
        assert config.primary_timeout == 0.2
        assert config.fallback_timeout == 2.0

    def test_ttl_for(self) -> None:
        config = CacheConfig(ttl_static=100, ttl_dynamic=10)
        assert config.ttl_for(TTLClass.STATIC) == 100
        assert config.ttl_for(TTLClass.DYNAMIC) == 10
        assert config.ttl_for("static") == 100  # type: ignore[arg-type]

    def test_unknown_backend(self) -> None:
        with pytest.raises(UnsupportedBackendError) as exc_info:
            CacheConfig(backend="wincache")  # type: ignore[arg-type]
        assert exc_info.value.kind == "wincache"
        assert "kv-store" in exc_info.value.details["supported"]

    def test_kv_store_requires_url(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(backend="kv-store")  # type: ignore[arg-type]

    def test_is_frozen(self) -> None:
        config = CacheConfig()
        with pytest.raises(ValidationError):
            config.namespace = "other"  # type: ignore[misc]

    def test_production_flag(self) -> None:
        assert TierCacheConfig(environment="production").is_production is True  # type: ignore[arg-type]
        assert TierCacheConfig(environment="test").is_production is False  # type: ignore[arg-type]


class TestLoadConfig:
    def test_defaults_from_empty_env(self, clean_env: pytest.MonkeyPatch) -> None:
        config = load_config(reload=True)

        assert config.environment == "test"
        assert config.cache.backend == "local-process"
        assert config.cache.salt is None

    def test_reads_cache_variables(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("CACHE_BACKEND", "KV-Store")
        clean_env.setenv("REDIS_URL", "redis://cache:6379/1")
        clean_env.setenv("CACHE_NAMESPACE", "star_cache")
        clean_env.setenv("CACHE_SALT", "pepper")
        clean_env.setenv("CACHE_TTL_DYNAMIC", "120")

        config = load_config(reload=True)

        assert config.cache.backend == "kv-store"
        assert config.cache.redis_url == "redis://cache:6379/1"
        assert config.cache.namespace == "star_cache"
        assert config.cache.salt == "pepper"
        assert config.cache.ttl_dynamic == 120

    def test_empty_secrets_are_unset(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("CACHE_SALT", "")
        assert load_config(reload=True).cache.salt is None

    def test_unknown_backend(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("CACHE_BACKEND", "apcu")
        with pytest.raises(UnsupportedBackendError):
            load_config(reload=True)

    def test_kv_store_without_url(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("CACHE_BACKEND", "kv-store")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(reload=True)
        assert "validation_errors" in exc_info.value.details

    def test_bad_number(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("CACHE_MAX_SIZE", "lots")
        with pytest.raises(ConfigurationError):
            load_config(reload=True)

    def test_env_file(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        env_file = tmp_path / "cache.env"
        env_file.write_text("CACHE_NAMESPACE=from_file\nCACHE_BACKEND=memory-distributed\n")
        # load_dotenv writes into os.environ; let monkeypatch restore it
        clean_env.setenv("CACHE_NAMESPACE", "before")
        clean_env.setenv("CACHE_BACKEND", "local-process")

        config = load_config(env_file=str(env_file), reload=True)

        assert config.cache.namespace == "from_file"
        assert config.cache.backend == "memory-distributed"

    def test_singleton(self, clean_env: pytest.MonkeyPatch) -> None:
        first = get_config()
        assert get_config() is first

        clean_env.setenv("CACHE_NAMESPACE", "changed")
        assert get_config().cache.namespace == first.cache.namespace
        assert reload_config().cache.namespace == "changed"
