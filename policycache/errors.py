"""
policycache — Core Error Types

Defines the exception hierarchy for the caching layer.
All exceptions inherit from PolicyCacheError for consistent handling.

Only ConfigurationError escapes to callers, and only at startup or
decoration time. Every CacheError subclass is caught inside the cache
layer, logged with context, and degraded to a neutral result.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """
    Standard error codes attached to cache diagnostics.

    Used in structured log records so failures can be grouped by kind.
    """

    # Configuration errors
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"

    # Backend errors
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    CACHE_FAILURE = "CACHE_FAILURE"

    # Degraded-path errors
    SERIALIZATION_FAILURE = "SERIALIZATION_FAILURE"
    MALFORMED_EVICTION_TARGET = "MALFORMED_EVICTION_TARGET"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class PolicyCacheError(Exception):
    """Base exception for all policycache errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for structured logging."""
        return {
            "error": self.__class__.__name__,
            "error_code": extract_error_code(self).value,
            "message": self.message,
            "details": self.details,
        }

    def log_extra(self) -> dict[str, Any]:
        """Fields safe to pass as logging `extra` (no reserved LogRecord names)."""
        data = self.to_dict()
        return {
            "error": data["message"],
            "error_type": data["error"],
            "error_code": data["error_code"],
            "error_details": data["details"],
        }


class ConfigurationError(PolicyCacheError):
    """Raised when configuration or a policy declaration is invalid."""


class CacheError(PolicyCacheError):
    """Base exception for cache-related errors."""


class CacheConnectionError(CacheError):
    """
    Raised when a cache backend cannot be reached.

    Only raised during startup backend selection; it triggers the one-time
    fallback to the in-process backend.
    """

    def __init__(self, backend: str, details: dict[str, Any] | None = None):
        message = f"Failed to connect to cache backend: {backend}"
        super().__init__(message, details)
        self.backend = backend


class CacheOperationError(CacheError):
    """
    A backend call failed after startup.

    Built by the facade to log the failure; the caller gets a neutral result.
    """


class CacheSerializationError(CacheError):
    """Raised when a value or argument cannot be structurally serialized."""


class EvictionTargetError(CacheError):
    """Raised when no eviction target can be derived from a call."""

    def __init__(self, operation_id: str, details: dict[str, Any] | None = None):
        message = f"No eviction target could be derived for operation: {operation_id}"
        super().__init__(message, details)
        self.operation_id = operation_id


def extract_error_code(error: Exception) -> ErrorCode:
    """
    Extract the appropriate ErrorCode from an exception.

    Args:
        error: Exception to categorize

    Returns:
        ErrorCode for the exception
    """
    if isinstance(error, CacheConnectionError):
        return ErrorCode.BACKEND_UNAVAILABLE

    if isinstance(error, CacheSerializationError):
        return ErrorCode.SERIALIZATION_FAILURE

    if isinstance(error, EvictionTargetError):
        return ErrorCode.MALFORMED_EVICTION_TARGET

    if isinstance(error, CacheError):
        return ErrorCode.CACHE_FAILURE

    if isinstance(error, ConfigurationError):
        return ErrorCode.INVALID_CONFIGURATION

    return ErrorCode.INTERNAL_ERROR
