"""
TierCache — Configuration Loader

Builds TierCacheConfig from environment variables, optionally seeded from a
.env file. Hosts that do not pass a config explicitly share a module-level
instance through get_config().
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError, UnsupportedBackendError
from .schemas import ONE_HOUR_SECONDS, ONE_YEAR_SECONDS, BackendKind, TierCacheConfig

logger = logging.getLogger(__name__)

_config_instance: TierCacheConfig | None = None

# CacheConfig field -> (environment variable, default, parser)
_CACHE_ENV: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "namespace": ("CACHE_NAMESPACE", "cache", str),
    "ttl_static": ("CACHE_TTL_STATIC", str(ONE_YEAR_SECONDS), int),
    "ttl_dynamic": ("CACHE_TTL_DYNAMIC", str(ONE_HOUR_SECONDS), int),
    "primary_timeout": ("CACHE_PRIMARY_TIMEOUT", "0.2", float),
    "fallback_timeout": ("CACHE_FALLBACK_TIMEOUT", "2.0", float),
    "max_size": ("CACHE_MAX_SIZE", "1000", int),
    "fallback_dir": ("CACHE_FALLBACK_DIR", "./data/cache", str),
    "redis_max_connections": ("REDIS_MAX_CONNECTIONS", "10", int),
    "redis_socket_timeout": ("REDIS_SOCKET_TIMEOUT", "5", int),
    "memcached_server": ("MEMCACHED_SERVER", "localhost:11211", str),
    "memcached_connect_timeout": ("MEMCACHED_CONNECT_TIMEOUT", "1.0", float),
}

# Empty string means unset for these
_OPTIONAL_CACHE_ENV = {
    "salt": "CACHE_SALT",
    "auth_key": "CACHE_AUTH_KEY",
    "secure_auth_salt": "CACHE_SECURE_AUTH_SALT",
    "redis_url": "REDIS_URL",
}


def _apply_env_file(env_path: Path) -> None:
    """Export a .env file into os.environ, overriding existing values."""
    if not env_path.exists():
        logger.debug(f"No .env file at {env_path}, using environment variables only")
        return

    logger.info(f"Loading environment from {env_path}")
    try:
        load_dotenv(env_path, override=True)
    except Exception as e:
        logger.error(
            f"Failed to load .env file from {env_path}: {e}",
            extra={"path": str(env_path), "error": str(e)},
            exc_info=True,
        )
        raise ConfigurationError(
            f"Failed to load environment file: {e}",
            details={"path": str(env_path), "error": str(e)},
        ) from e


def _cache_settings_from_env() -> dict[str, Any]:
    """
    Read the CACHE_*, REDIS_* and MEMCACHED_* variables.

    Raises:
        UnsupportedBackendError: If CACHE_BACKEND names an unknown backend
        ConfigurationError: If a numeric variable does not parse
    """
    # No auto-detection: the backend is whatever CACHE_BACKEND says
    backend = os.getenv("CACHE_BACKEND", BackendKind.LOCAL_PROCESS.value).strip().lower()
    if backend not in BackendKind.values():
        raise UnsupportedBackendError(backend, supported=BackendKind.values())

    settings: dict[str, Any] = {"backend": backend}
    for field, env_name in _OPTIONAL_CACHE_ENV.items():
        settings[field] = os.getenv(env_name) or None

    for field, (env_name, default, parse) in _CACHE_ENV.items():
        raw = os.getenv(env_name, default)
        try:
            settings[field] = parse(raw)
        except ValueError as e:
            logger.error(f"Invalid value for {env_name}: {raw!r}", extra={"env": env_name, "error": str(e)})
            raise ConfigurationError(
                f"Invalid value for {env_name}: {raw!r}",
                details={"env": env_name, "value": raw, "error": str(e)},
            ) from e

    return settings


def load_config(
    env_file: str | None = None,
    reload: bool = False,
) -> TierCacheConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Path to .env file (default: .env in current directory)
        reload: Build a new instance even if one is already loaded

    Returns:
        Validated TierCacheConfig instance

    Raises:
        UnsupportedBackendError: If CACHE_BACKEND names an unknown backend
        ConfigurationError: If configuration is otherwise invalid
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    _apply_env_file(Path(env_file) if env_file else Path.cwd() / ".env")

    raw_config = {
        "environment": os.getenv("ENVIRONMENT", "development"),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "log_json": os.getenv("LOG_JSON", "false").lower() == "true",
        "cache": _cache_settings_from_env(),
    }

    try:
        config = TierCacheConfig(**raw_config)  # type: ignore[arg-type]
    except ValidationError as e:
        logger.error(
            f"Configuration validation failed: {e}",
            extra={"validation_errors": e.errors(), "cache_backend": raw_config["cache"]["backend"]},
        )
        raise ConfigurationError(
            "Configuration validation failed. Check the CACHE_*, REDIS_* and MEMCACHED_* variables.",
            details={"validation_errors": e.errors()},
        ) from e

    _config_instance = config
    logger.info(
        f"Configuration loaded (environment: {config.environment}, cache backend: {config.cache.backend})",
        extra={"environment": config.environment, "cache_backend": config.cache.backend},
    )
    return config


def get_config() -> TierCacheConfig:
    """Return the shared configuration, loading it on first access."""
    if _config_instance is None:
        return load_config()
    return _config_instance


def reload_config(env_file: str | None = None) -> TierCacheConfig:
    """Rebuild the shared configuration from the current environment."""
    return load_config(env_file=env_file, reload=True)


def reset_config() -> None:
    """Drop the shared configuration instance. Intended for tests."""
    global _config_instance
    _config_instance = None
