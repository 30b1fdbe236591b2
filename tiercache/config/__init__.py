"""
TierCache — Configuration Module

Provides typed configuration loading and validation.
"""

from .loader import get_config, load_config, reload_config, reset_config
from .schemas import (
    ONE_HOUR_SECONDS,
    ONE_YEAR_SECONDS,
    BackendKind,
    CacheConfig,
    Environment,
    LogLevel,
    TierCacheConfig,
    TTLClass,
)

__all__ = [
    # Loader functions
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    # Main config
    "TierCacheConfig",
    "CacheConfig",
    # Enums
    "Environment",
    "BackendKind",
    "TTLClass",
    "LogLevel",
    # Defaults
    "ONE_YEAR_SECONDS",
    "ONE_HOUR_SECONDS",
]
