"""
TierCache — Cache Module

Two-tier caching with a pluggable primary backend and a persistent fallback store.

Layout:
- keys.py: KeyCodec, namespaced + salted + hashed key derivation
- interface.py: Backend interface every store implements
- backends/: local-process, kv-store (redis), memory-distributed (memcached), fallback (diskcache)
- registry.py: picks the primary backend once, from configuration
- manager.py: CacheManager, the public get/set/delete API
- lifecycle.py: connection shutdown and scoped fallback cleanup

Usage:
    from tiercache.cache import CacheManager

    async with CacheManager() as cache:
        await cache.set("value", "reference")
        value, found = await cache.get("reference")
"""

from .interface import MISS, Backend, CacheLookup
from .keys import KeyCodec, resolve_salt
from .lifecycle import ConnectionLifecycle
from .manager import CacheManager
from .registry import BackendRegistry
from .transient import TransientCache

__all__ = [
    # Public API
    "CacheManager",
    "TransientCache",
    # Building blocks
    "KeyCodec",
    "resolve_salt",
    "BackendRegistry",
    "ConnectionLifecycle",
    # Interface
    "Backend",
    "CacheLookup",
    "MISS",
]
