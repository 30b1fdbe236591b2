"""
TierCache — Backend Registry

Holds the configured primary backend and the always-present persistent
fallback store. The primary is chosen once, at construction, from
CacheConfig.backend; there is no runtime detection of "whatever is installed".

Client libraries for network backends are imported lazily so that a
local-process deployment does not need redis or pymemcache installed.

Examples:
    from tiercache.cache.registry import BackendRegistry
    from tiercache.config import CacheConfig

    registry = BackendRegistry(CacheConfig(backend="kv-store", redis_url="redis://localhost:6379/0"))
    primary = registry.primary()
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

from ..config import BackendKind, CacheConfig
from ..errors import ConfigurationError, UnsupportedBackendError
from .backends.memory import LocalProcessBackend
from .interface import Backend

logger = logging.getLogger(__name__)


def _create_local_process(config: CacheConfig) -> Backend:
    """Internal helper to construct the in-process backend."""
    return LocalProcessBackend(max_size=config.max_size)


def _create_kv_store(config: CacheConfig) -> Backend:
    """Internal helper to construct the redis backend with lazy import."""
    if not config.redis_url:
        raise ConfigurationError(
            "REDIS_URL must be set when CACHE_BACKEND=kv-store",
            details={"env": "REDIS_URL", "backend": BackendKind.KV_STORE.value},
        )

    try:
        from .backends.redis import KeyValueStoreBackend
    except ImportError as e:
        logger.error(
            "kv-store backend selected but redis client is not installed",
            extra={"package": "redis>=5.0.0", "error": str(e)},
        )
        raise ConfigurationError(
            "kv-store backend selected but redis client is unavailable. Install with: pip install 'redis>=5.0.0'",
            details={"package": "redis>=5.0.0", "error": str(e), "backend": BackendKind.KV_STORE.value},
        ) from e

    return KeyValueStoreBackend(
        redis_url=config.redis_url,
        max_connections=config.redis_max_connections,
        socket_timeout=config.redis_socket_timeout,
    )


def _create_memory_distributed(config: CacheConfig) -> Backend:
    """Internal helper to construct the memcached backend with lazy import."""
    try:
        from .backends.memcached import DistributedMemoryBackend
    except ImportError as e:
        logger.error(
            "memory-distributed backend selected but pymemcache is not installed",
            extra={"package": "pymemcache>=4.0", "error": str(e)},
        )
        raise ConfigurationError(
            "memory-distributed backend selected but pymemcache is unavailable. "
            "Install with: pip install 'pymemcache>=4.0'",
            details={"package": "pymemcache>=4.0", "error": str(e), "backend": BackendKind.MEMORY_DISTRIBUTED.value},
        ) from e

    return DistributedMemoryBackend(
        server=config.memcached_server,
        connect_timeout=config.memcached_connect_timeout,
        timeout=config.primary_timeout,
    )


def _create_fallback(config: CacheConfig) -> Backend:
    """Internal helper to construct the persistent fallback store."""
    from .backends.disk import PersistentFallbackBackend

    return PersistentFallbackBackend(directory=config.fallback_dir, timeout=config.fallback_timeout)


_PRIMARY_BUILDERS: dict[BackendKind, Callable[[CacheConfig], Backend]] = {
    BackendKind.LOCAL_PROCESS: _create_local_process,
    BackendKind.KV_STORE: _create_kv_store,
    BackendKind.MEMORY_DISTRIBUTED: _create_memory_distributed,
}


def resolve_kind(kind: object) -> BackendKind:
    """
    Map a configured backend value to BackendKind.

    Raises:
        UnsupportedBackendError: If the value names no known backend
    """
    try:
        return BackendKind(kind)
    except ValueError as e:
        raise UnsupportedBackendError(kind, supported=BackendKind.values()) from e


class BackendRegistry:
    """
    Owns the primary backend and the fallback store for one CacheManager.

    Both are built (not connected) at construction. Instances passed in
    explicitly take precedence over the configured ones, which lets hosts and
    tests inject their own backends.
    """

    def __init__(
        self,
        config: CacheConfig,
        primary: Backend | None = None,
        fallback: Backend | None = None,
    ) -> None:
        """
        Build the registry.

        Args:
            config: Cache configuration
            primary: Explicit primary backend (skips construction from config)
            fallback: Explicit fallback store (skips construction from config)

        Raises:
            UnsupportedBackendError: If config.backend is not a supported kind
            ConfigurationError: If the chosen backend cannot be constructed
        """
        self.config = config
        self._kind = resolve_kind(config.backend)

        logger.info(
            "Creating cache backends (primary: %s)",
            self._kind.value,
            extra={"backend": self._kind.value, "injected_primary": primary is not None},
        )

        try:
            self._primary = primary or _PRIMARY_BUILDERS[self._kind](config)
            self._fallback = fallback or _create_fallback(config)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(
                "Unexpected error creating cache backend '%s': %s",
                self._kind.value,
                e,
                extra={"backend": self._kind.value, "error": str(e)},
                exc_info=True,
            )
            raise ConfigurationError(
                f"Failed to create cache backend '{self._kind.value}': {e}",
                details={"backend": self._kind.value, "error": str(e)},
            ) from e

    @property
    def kind(self) -> BackendKind:
        return self._kind

    def primary(self) -> Backend:
        """The configured primary backend."""
        return self._primary

    def fallback(self) -> Backend:
        """The persistent fallback store."""
        return self._fallback

    def backends(self) -> Iterator[tuple[str, Backend]]:
        """Yield ("primary", backend) then ("fallback", backend)."""
        yield "primary", self._primary
        yield "fallback", self._fallback

    def __repr__(self) -> str:
        return f"BackendRegistry(kind={self._kind.value!r}, fallback={self._fallback.name!r})"
