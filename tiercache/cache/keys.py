"""
TierCache — Key Derivation

Derives stable, namespaced, salted and hashed cache keys from a logical
reference and an optional scope (user, tenant, ...).

SHA-256 is used rather than a fast non-cryptographic hash so that keys cannot
be predicted or enumerated without the salt.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from ..config import CacheConfig, TierCacheConfig
from ..errors import InvalidArgumentError, MisconfiguredSaltError

logger = logging.getLogger(__name__)

# Only used outside production
DEFAULT_SALT = "default_salt"


def resolve_salt(cache_config: CacheConfig, production: bool = False) -> str:
    """
    Pick the salt for key derivation.

    Order: explicit salt, then auth_key + secure_auth_salt, then (outside
    production only) the default literal.

    Raises:
        MisconfiguredSaltError: In production when no salt can be resolved
    """
    if cache_config.salt:
        return cache_config.salt

    if cache_config.auth_key and cache_config.secure_auth_salt:
        return cache_config.auth_key + cache_config.secure_auth_salt

    if production:
        logger.error("No cache key salt configured in production")
        raise MisconfiguredSaltError("production")

    logger.warning(
        "No cache key salt configured, using the default salt (not safe for production)",
        extra={"namespace": cache_config.namespace},
    )
    return DEFAULT_SALT


class KeyCodec:
    """
    Deterministic cache key derivation.

    key = sha256(namespace + "_" + scope + "_" + reference + salt), hex encoded.

    The parts are joined with "_" and not escaped, so a scope containing "_"
    can alias another (scope, reference) pair: scope "a_b" with reference "c"
    yields the same key as scope "a" with reference "b_c". Keep "_" out of
    scope identifiers (user ids, tenant ids) when both parts vary.
    """

    def __init__(self, namespace: str = "cache", salt: str = DEFAULT_SALT) -> None:
        if not namespace:
            raise InvalidArgumentError("namespace must be a non-empty string")
        self.namespace = namespace
        self._salt = salt

    @classmethod
    def from_config(cls, config: TierCacheConfig) -> KeyCodec:
        """Build a codec from configuration, resolving the salt."""
        salt = resolve_salt(config.cache, production=config.is_production)
        return cls(namespace=config.cache.namespace, salt=salt)

    @staticmethod
    def hash_key(raw: str) -> str:
        """Hash a raw key with SHA-256."""
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    @staticmethod
    def _validate(reference: Any, scope: Any) -> None:
        if not isinstance(reference, str):
            raise InvalidArgumentError(
                "reference must be a string",
                details={"reference_type": type(reference).__name__},
            )
        if not reference:
            raise InvalidArgumentError("reference must be a non-empty string")
        if scope is not None and not isinstance(scope, str):
            raise InvalidArgumentError(
                "scope must be a string or None",
                details={"scope_type": type(scope).__name__},
            )

    def derive_key(self, reference: str, scope: str | None = None) -> str:
        """
        Derive the cache key for a reference and optional scope.

        Args:
            reference: Logical name of the cached data (e.g. a table name)
            scope: Optional identifier personalizing the key (e.g. a user id);
                must not contain "_" if references may, see the class docstring

        Returns:
            64-character hex digest

        Raises:
            InvalidArgumentError: If reference is empty or either argument is not a string
        """
        self._validate(reference, scope)
        raw_key = f"{self.namespace}_{scope or ''}_{reference}"
        return self.hash_key(raw_key + self._salt)

    def scope_group(self, reference: str, scope: str | None = None) -> str:
        """
        Grouping label for a reference: "user_<scope>" when scoped, else the reference.

        Used as a logging and invalidation hint only; key uniqueness comes from derive_key.
        """
        self._validate(reference, scope)
        return f"user_{scope}" if scope else reference

    def __repr__(self) -> str:
        return f"KeyCodec(namespace={self.namespace!r})"
