"""
TierCache — Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.
All configuration is defined here and validated once, at startup.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..errors import UnsupportedBackendError

# 365 days, matching the classic YEAR_IN_SECONDS constant
ONE_YEAR_SECONDS = 365 * 24 * 60 * 60
ONE_HOUR_SECONDS = 60 * 60


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class BackendKind(str, Enum):
    """Supported primary cache backends."""

    MEMORY_DISTRIBUTED = "memory-distributed"  # memcached
    KV_STORE = "kv-store"  # redis
    LOCAL_PROCESS = "local-process"

    @classmethod
    def values(cls) -> list[str]:
        return [kind.value for kind in cls]


class TTLClass(str, Enum):
    """Expiration policy selected by the caller on set."""

    STATIC = "static"
    DYNAMIC = "dynamic"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheConfig(BaseModel):
    """Cache configuration. Immutable for the lifetime of a CacheManager."""

    backend: BackendKind = Field(default=BackendKind.LOCAL_PROCESS, description="Primary cache backend")
    namespace: str = Field(default="cache", min_length=1, description="Cache key namespace")

    # Key salt: explicit value, or derived from two deployment secrets
    salt: str | None = Field(default=None, description="Secret salt mixed into every cache key")
    auth_key: str | None = Field(default=None, description="First secret used to derive the salt")
    secure_auth_salt: str | None = Field(default=None, description="Second secret used to derive the salt")

    ttl_static: int = Field(default=ONE_YEAR_SECONDS, ge=0, description="TTL for static entries (0 = no expiry)")
    ttl_dynamic: int = Field(default=ONE_HOUR_SECONDS, ge=0, description="TTL for dynamic entries (0 = no expiry)")

    primary_timeout: float = Field(default=0.2, gt=0, description="Per-call timeout for the primary backend")
    fallback_timeout: float = Field(default=2.0, gt=0, description="Per-call timeout for the fallback store")

    # local-process settings
    max_size: int = Field(default=1000, ge=1, description="Max entries (local-process backend)")

    # kv-store settings (only used when backend=kv-store)
    redis_url: str | None = Field(default=None, description="Redis connection URL")
    redis_max_connections: int = Field(default=10, ge=1, description="Redis connection pool size")
    redis_socket_timeout: int = Field(default=5, ge=1, description="Redis socket timeout in seconds")

    # memory-distributed settings (only used when backend=memory-distributed)
    memcached_server: str = Field(default="localhost:11211", description="Memcached server as host:port")
    memcached_connect_timeout: float = Field(default=1.0, gt=0, description="Memcached connect timeout in seconds")

    # Persistent fallback store
    fallback_dir: str = Field(default="./data/cache", description="Directory of the persistent fallback store")

    @field_validator("backend", mode="before")
    @classmethod
    def validate_backend(cls, v: Any) -> Any:
        """Reject unknown backend kinds with the dedicated error type."""
        if isinstance(v, BackendKind):
            return v
        if v not in BackendKind.values():
            raise UnsupportedBackendError(v, supported=BackendKind.values())
        return v

    @model_validator(mode="after")
    def validate_connection_params(self) -> "CacheConfig":
        """Ensure redis_url is provided when backend is kv-store."""
        if self.backend == BackendKind.KV_STORE and not self.redis_url:
            raise ValueError("redis_url is required when cache backend is 'kv-store'")
        return self

    def ttl_for(self, ttl_class: TTLClass) -> int:
        """Resolve a TTL class to seconds."""
        return self.ttl_static if TTLClass(ttl_class) == TTLClass.STATIC else self.ttl_dynamic

    model_config = ConfigDict(use_enum_values=True, frozen=True)


class TierCacheConfig(BaseModel):
    """Root configuration for TierCache."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Runtime environment")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    cache: CacheConfig = Field(default_factory=CacheConfig)

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    model_config = ConfigDict(use_enum_values=True, frozen=True)
