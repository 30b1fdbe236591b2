"""
TierCache — Cache Manager

The public API: get/set/delete/flush_reload keyed by a logical reference and
an optional scope.

Availability policy:
- every write goes to the primary backend and to the persistent fallback store
- a read that misses (or cannot reach) the primary is retried on the fallback
- backend outages and timeouts degrade to a miss / False / no-op; only bad
  caller input (InvalidArgumentError) is raised

Usage:
    from tiercache import CacheManager, TTLClass

    async with CacheManager() as cache:
        await cache.set({"name": "Jane"}, "profile", scope="user1", ttl_class=TTLClass.STATIC)
        value, found = await cache.get("profile", scope="user1")
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from types import TracebackType
from typing import Any

from ..config import TierCacheConfig, TTLClass, get_config
from ..errors import BackendUnavailableError, InvalidArgumentError
from .interface import MISS, Backend, CacheLookup
from .keys import KeyCodec
from .lifecycle import ConnectionLifecycle
from .registry import BackendRegistry

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Two-tier cache facade over a BackendRegistry.

    Holds no entries and no cross-call lock; concurrent calls are independent.
    Every backend call is bounded by the tier's timeout.
    """

    def __init__(
        self,
        config: TierCacheConfig | None = None,
        registry: BackendRegistry | None = None,
        codec: KeyCodec | None = None,
    ) -> None:
        """
        Initialize the manager.

        Args:
            config: Root configuration (uses the loaded global config if not provided)
            registry: Pre-built registry (built from config.cache if not provided)
            codec: Pre-built key codec (built from config if not provided)

        Raises:
            UnsupportedBackendError: If the configured backend kind is unknown
            MisconfiguredSaltError: If no salt is configured in production
            ConfigurationError: If a backend cannot be constructed
        """
        self.config = config or get_config()
        cache_config = self.config.cache

        self._codec = codec or KeyCodec.from_config(self.config)
        self._registry = registry or BackendRegistry(cache_config)
        self._lifecycle = ConnectionLifecycle(self._registry, fallback_timeout=cache_config.fallback_timeout)
        self._timeouts = {
            "primary": cache_config.primary_timeout,
            "fallback": cache_config.fallback_timeout,
        }
        self._stats: Counter[str] = Counter()

        logger.info(
            f"Cache manager ready (primary: {self._registry.kind.value}, namespace: {self._codec.namespace})",
            extra={"backend": self._registry.kind.value, "namespace": self._codec.namespace},
        )

    @property
    def codec(self) -> KeyCodec:
        return self._codec

    @property
    def registry(self) -> BackendRegistry:
        return self._registry

    @property
    def lifecycle(self) -> ConnectionLifecycle:
        return self._lifecycle

    # ------------ Helpers ------------

    def _backend(self, tier: str) -> Backend:
        return self._registry.primary() if tier == "primary" else self._registry.fallback()

    async def _call(self, tier: str, op: str, *args: Any) -> Any:
        """
        Run one backend operation under the tier's timeout.

        Timeouts surface as BackendUnavailableError. Cancellation of the
        calling task cancels the backend call and propagates.
        """
        backend = self._backend(tier)
        timeout = self._timeouts[tier]
        try:
            return await asyncio.wait_for(getattr(backend, op)(*args), timeout)
        except TimeoutError as e:
            raise BackendUnavailableError(
                backend.name, {"operation": op, "tier": tier, "timeout": timeout, "reason": "timeout"}
            ) from e

    async def _read(self, tier: str, key: str, group: str) -> CacheLookup:
        try:
            lookup = await self._call(tier, "get", key)
        except BackendUnavailableError as e:
            self._stats[f"{tier}_errors"] += 1
            logger.warning(
                f"{tier} cache read failed, treating as miss: {e}",
                extra={"tier": tier, "key": key, "group": group, **e.details},
            )
            return MISS

        if lookup.found:
            self._stats[f"{tier}_hits"] += 1
        return lookup

    async def _write(self, tier: str, key: str, value: Any, ttl: int, group: str) -> bool:
        try:
            ok = bool(await self._call(tier, "set", key, value, ttl))
        except BackendUnavailableError as e:
            self._stats[f"{tier}_errors"] += 1
            logger.warning(
                f"{tier} cache write failed: {e}",
                extra={"tier": tier, "key": key, "group": group, **e.details},
            )
            return False

        if not ok:
            logger.warning(f"{tier} cache rejected write", extra={"tier": tier, "key": key, "group": group})
        return ok

    async def _remove(self, tier: str, key: str, group: str) -> None:
        try:
            await self._call(tier, "delete", key)
        except BackendUnavailableError as e:
            self._stats[f"{tier}_errors"] += 1
            logger.warning(
                f"{tier} cache delete failed, entry will expire on its own: {e}",
                extra={"tier": tier, "key": key, "group": group, **e.details},
            )

    # ------------ Public API ------------

    async def get(self, reference: str, scope: str | None = None) -> CacheLookup:
        """
        Read a cached value.

        Args:
            reference: Logical name of the cached data
            scope: Optional scope identifier (e.g. a user id)

        Returns:
            CacheLookup(value, True) on a hit in either tier, CacheLookup(None, False) otherwise

        Raises:
            InvalidArgumentError: If reference or scope is invalid
        """
        key = self._codec.derive_key(reference, scope)
        group = self._codec.scope_group(reference, scope)

        lookup = await self._read("primary", key, group)
        if lookup.found:
            return lookup

        lookup = await self._read("fallback", key, group)
        if not lookup.found:
            self._stats["misses"] += 1
        return lookup

    async def set(
        self,
        value: Any,
        reference: str,
        scope: str | None = None,
        ttl_class: TTLClass = TTLClass.DYNAMIC,
    ) -> bool:
        """
        Write a value to the primary backend and the fallback store.

        The two writes run concurrently and are not atomic with each other.

        Args:
            value: Value to cache
            reference: Logical name of the cached data
            scope: Optional scope identifier
            ttl_class: STATIC (long-lived) or DYNAMIC (short-lived)

        Returns:
            True if at least one tier stored the value

        Raises:
            InvalidArgumentError: If reference, scope or ttl_class is invalid
        """
        key = self._codec.derive_key(reference, scope)
        group = self._codec.scope_group(reference, scope)
        try:
            ttl = self.config.cache.ttl_for(ttl_class)
        except ValueError as e:
            raise InvalidArgumentError(f"Unknown TTL class: {ttl_class}", details={"ttl_class": str(ttl_class)}) from e

        primary_ok, fallback_ok = await asyncio.gather(
            self._write("primary", key, value, ttl, group),
            self._write("fallback", key, value, ttl, group),
        )

        self._stats["sets"] += 1
        if not (primary_ok or fallback_ok):
            self._stats["set_failures"] += 1
            logger.error(
                "Failed to cache value in any tier",
                extra={"key": key, "group": group, "ttl": ttl},
            )
            return False
        return True

    async def delete(self, reference: str, scope: str | None = None) -> None:
        """
        Remove a value from both tiers. Backend failures are logged, never raised.

        Raises:
            InvalidArgumentError: If reference or scope is invalid
        """
        key = self._codec.derive_key(reference, scope)
        group = self._codec.scope_group(reference, scope)

        await asyncio.gather(
            self._remove("primary", key, group),
            self._remove("fallback", key, group),
        )
        self._stats["deletes"] += 1

    async def flush_reload(self, reference: str, scope: str | None = None) -> None:
        """
        Drop a cached value so the next read recomputes it.

        Only the delete half happens here; repopulating is the caller's job.
        Never raises: invalid input is logged like any other flush failure.
        """
        try:
            await self.delete(reference, scope)
        except InvalidArgumentError as e:
            logger.error(f"Error flushing cache: {e}", extra={"reference": repr(reference), "error": str(e)})

    async def purge_scope(self, prefix: str) -> int:
        """Remove fallback entries whose raw key starts with prefix. See ConnectionLifecycle.purge_scope."""
        return await self._lifecycle.purge_scope(prefix)

    async def get_stats(self) -> dict[str, Any]:
        """Manager counters plus per-backend statistics."""
        stats: dict[str, Any] = {
            "backend": self._registry.kind.value,
            "namespace": self._codec.namespace,
            "closed": self._lifecycle.closed,
            **{name: self._stats[name] for name in ("sets", "set_failures", "deletes", "misses")},
            "primary_hits": self._stats["primary_hits"],
            "fallback_hits": self._stats["fallback_hits"],
            "primary_errors": self._stats["primary_errors"],
            "fallback_errors": self._stats["fallback_errors"],
        }
        for role, backend in self._registry.backends():
            stats[role] = await backend.get_stats()
        return stats

    async def close(self) -> None:
        """Close every backend connection. Idempotent."""
        await self._lifecycle.close_all()

    async def __aenter__(self) -> CacheManager:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"CacheManager(registry={self._registry!r}, namespace={self._codec.namespace!r})"
