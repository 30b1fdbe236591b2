"""
TierCache — Core Error Types

Defines the exception hierarchy for the cache layer.
All exceptions inherit from TierCacheError for consistent error handling.

Propagation rules:
- InvalidArgumentError always reaches the caller
- ConfigurationError (and subclasses) fail fast at construction
- BackendUnavailableError is raised by backends and absorbed by CacheManager
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """
    Standard error codes for structured error reporting.

    Hosts that surface cache failures to their own clients can use these
    instead of exception class names.
    """

    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    UNSUPPORTED_BACKEND = "UNSUPPORTED_BACKEND"
    MISCONFIGURED_SALT = "MISCONFIGURED_SALT"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    CACHE_FAILURE = "CACHE_FAILURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class TierCacheError(Exception):
    """Base exception for all TierCache errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logs and responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(TierCacheError):
    """Raised when configuration is invalid or missing."""


class UnsupportedBackendError(ConfigurationError):
    """Raised when the configured backend kind is not one this library provides."""

    def __init__(self, kind: Any, supported: list[str] | None = None):
        message = f"Unsupported cache backend: {kind}"
        details: dict[str, Any] = {"backend": str(kind)}
        if supported:
            details["supported"] = supported
        super().__init__(message, details)
        self.kind = kind


class MisconfiguredSaltError(ConfigurationError):
    """Raised when no usable key salt is configured in production."""

    def __init__(self, environment: str):
        message = (
            "A cache key salt is required in production. "
            "Set CACHE_SALT, or both CACHE_AUTH_KEY and CACHE_SECURE_AUTH_SALT."
        )
        super().__init__(message, {"environment": environment})


class InvalidArgumentError(TierCacheError):
    """Raised when a caller passes an unusable reference or scope."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)


class CacheError(TierCacheError):
    """Base exception for cache I/O errors."""


class BackendUnavailableError(CacheError):
    """Raised when a backend cannot be reached, timed out, or was closed."""

    def __init__(self, backend: str, details: dict[str, Any] | None = None):
        message = f"Cache backend unavailable: {backend}"
        super().__init__(message, details)
        self.backend = backend


def extract_error_code(error: Exception) -> ErrorCode:
    """
    Extract the appropriate ErrorCode from an exception.

    Args:
        error: Exception to categorize

    Returns:
        ErrorCode for the exception
    """
    if isinstance(error, InvalidArgumentError):
        return ErrorCode.INVALID_ARGUMENT

    if isinstance(error, UnsupportedBackendError):
        return ErrorCode.UNSUPPORTED_BACKEND

    if isinstance(error, MisconfiguredSaltError):
        return ErrorCode.MISCONFIGURED_SALT

    if isinstance(error, ConfigurationError):
        return ErrorCode.CONFIGURATION_ERROR

    if isinstance(error, BackendUnavailableError):
        return ErrorCode.BACKEND_UNAVAILABLE

    if isinstance(error, CacheError):
        return ErrorCode.CACHE_FAILURE

    return ErrorCode.INTERNAL_ERROR
