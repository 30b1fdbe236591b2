"""
TierCache — Transient Cache

Manager-shaped access to the persistent fallback store alone, for data that
should never live in the primary backend (e.g. bulky per-user snapshots).
Shares key derivation and TTL classes with CacheManager, so both see the
same fallback entries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from ..config import TierCacheConfig, TTLClass
from ..errors import BackendUnavailableError, InvalidArgumentError
from .interface import MISS, Backend, CacheLookup
from .keys import KeyCodec

if TYPE_CHECKING:
    from .manager import CacheManager

logger = logging.getLogger(__name__)


class TransientCache:
    """Get/set/delete against the fallback store only."""

    def __init__(self, config: TierCacheConfig, store: Backend, codec: KeyCodec | None = None) -> None:
        self.config = config
        self._store = store
        self._codec = codec or KeyCodec.from_config(config)
        self._timeout = config.cache.fallback_timeout

    @classmethod
    def from_manager(cls, manager: CacheManager) -> TransientCache:
        """Share a CacheManager's fallback store and key codec."""
        return cls(manager.config, manager.registry.fallback(), codec=manager.codec)

    async def get(self, reference: str, scope: str | None = None) -> CacheLookup:
        key = self._codec.derive_key(reference, scope)
        try:
            return await asyncio.wait_for(self._store.get(key), self._timeout)
        except (BackendUnavailableError, TimeoutError) as e:
            logger.warning(f"Error getting transient cache: {e}", extra={"key": key})
            return MISS

    async def set(
        self,
        value: Any,
        reference: str,
        scope: str | None = None,
        ttl_class: TTLClass = TTLClass.DYNAMIC,
    ) -> bool:
        key = self._codec.derive_key(reference, scope)
        try:
            ttl = self.config.cache.ttl_for(ttl_class)
        except ValueError as e:
            raise InvalidArgumentError(f"Unknown TTL class: {ttl_class}", details={"ttl_class": str(ttl_class)}) from e

        try:
            stored = await asyncio.wait_for(self._store.set(key, value, ttl), self._timeout)
        except (BackendUnavailableError, TimeoutError) as e:
            logger.warning(f"Error setting transient cache: {e}", extra={"key": key})
            return False

        if not stored:
            logger.warning("Failed to set transient cache", extra={"key": key})
        return stored

    async def delete(self, reference: str, scope: str | None = None) -> None:
        key = self._codec.derive_key(reference, scope)
        try:
            await asyncio.wait_for(self._store.delete(key), self._timeout)
        except (BackendUnavailableError, TimeoutError) as e:
            logger.warning(f"Error deleting transient cache: {e}", extra={"key": key})
