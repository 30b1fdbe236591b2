"""
TierCache — Unified Cache Abstraction Layer

One explicitly configured primary backend (memcached, redis or in-process),
an always-present persistent fallback store, and namespaced, salted, hashed keys.
"""

__version__ = "1.0.0"

from .cache import BackendRegistry, CacheLookup, CacheManager, ConnectionLifecycle, KeyCodec, TransientCache
from .config import BackendKind, CacheConfig, TierCacheConfig, TTLClass
from .errors import (
    BackendUnavailableError,
    ConfigurationError,
    InvalidArgumentError,
    MisconfiguredSaltError,
    TierCacheError,
    UnsupportedBackendError,
)
from .observability import configure_logging

__all__ = [
    "CacheManager",
    "TransientCache",
    "CacheLookup",
    "KeyCodec",
    "BackendRegistry",
    "ConnectionLifecycle",
    "TierCacheConfig",
    "CacheConfig",
    "BackendKind",
    "TTLClass",
    "TierCacheError",
    "ConfigurationError",
    "UnsupportedBackendError",
    "MisconfiguredSaltError",
    "InvalidArgumentError",
    "BackendUnavailableError",
    "configure_logging",
]
