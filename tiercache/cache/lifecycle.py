"""
TierCache — Connection Lifecycle

Closes backend connections and bulk-removes fallback entries for a scope
that is being torn down.
"""

import asyncio
import logging
import threading

from ..config import TTLClass
from ..errors import BackendUnavailableError
from .registry import BackendRegistry

logger = logging.getLogger(__name__)


class ConnectionLifecycle:
    """
    Release discipline for the backends owned by one BackendRegistry.

    close_all() must run once during host shutdown; calling it again is a no-op.
    """

    def __init__(self, registry: BackendRegistry, fallback_timeout: float = 2.0) -> None:
        self._registry = registry
        self._fallback_timeout = fallback_timeout
        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    async def close_all(self) -> None:
        """
        Close primary and fallback connections.

        A failure closing one backend is logged and does not stop the other
        from being closed.
        """
        # Only the first caller, from any thread or event loop, does the closing
        with self._close_lock:
            if self._closed:
                logger.debug("Cache backends already closed")
                return
            self._closed = True

        for role, backend in self._registry.backends():
            try:
                await backend.close()
                logger.info(f"Closed {role} cache backend: {backend.name}")
            except Exception as e:
                logger.error(
                    f"Error closing {role} cache backend '{backend.name}': {e}",
                    extra={"role": role, "backend": backend.name, "error": str(e)},
                    exc_info=True,
                )

    async def purge_scope(self, prefix: str) -> int:
        """
        Delete every fallback entry whose key starts with prefix.

        The prefix is matched against raw stored keys. Entries written through
        CacheManager or TransientCache are stored under SHA-256 digests, so a
        reference or scope_group() label never matches them; this only purges
        entries a host wrote to the fallback store under its own raw keys.

        Args:
            prefix: Raw key prefix to purge

        Returns:
            Number of entries removed (0 if the fallback store is unavailable)
        """
        fallback = self._registry.fallback()

        try:
            keys = await asyncio.wait_for(fallback.scan_prefix(prefix), self._fallback_timeout)
        except (BackendUnavailableError, TimeoutError) as e:
            logger.warning(
                f"Could not scan fallback store for prefix '{prefix}': {e}",
                extra={"prefix": prefix, "error": str(e)},
            )
            return 0

        removed = 0
        for key in keys:
            try:
                await asyncio.wait_for(fallback.delete(key), self._fallback_timeout)
                removed += 1
            except (BackendUnavailableError, TimeoutError) as e:
                logger.warning(
                    f"Failed to purge fallback key '{key}': {e}",
                    extra={"key": key, "prefix": prefix, "error": str(e)},
                )

        logger.info(f"Purged {removed} fallback entries with prefix '{prefix}'", extra={"prefix": prefix})
        return removed

    async def shutdown(self, ttl_class: TTLClass = TTLClass.DYNAMIC, prefix: str | None = None) -> int:
        """
        Purge ephemeral fallback entries for a scope, then close all connections.

        Entries are purged only when ttl_class is DYNAMIC and a prefix is given;
        static entries are meant to outlive the process. The prefix has the
        same raw-key semantics as purge_scope(): hashed manager keys are never
        matched, and they expire through their TTL instead.

        Returns:
            Number of entries purged
        """
        purged = 0
        if TTLClass(ttl_class) == TTLClass.DYNAMIC and prefix and not self._closed:
            purged = await self.purge_scope(prefix)

        await self.close_all()
        return purged
