"""
TierCache — Cache Backends

Exports the always-available backend implementations.

The network backends (redis, memcached) and the diskcache fallback store are
imported lazily by registry.py so their client libraries load only when used.
"""

from .memory import LocalProcessBackend

__all__ = [
    "LocalProcessBackend",
]
