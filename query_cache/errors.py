"""
Query Cache — Core Error Types

Defines the exception hierarchy for the query cache layer.
All exceptions raised by this package inherit from QueryCacheError.

Database errors raised while executing a query are NOT wrapped; they
propagate to the caller exactly as the database driver raised them.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes attached to error payloads."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CACHE_FAILURE = "CACHE_FAILURE"
    CACHE_MISS = "CACHE_MISS"
    STORAGE_ERROR = "STORAGE_ERROR"
    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class QueryCacheError(Exception):
    """Base exception for all query cache errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logs."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(QueryCacheError):
    """Raised when configuration is invalid or missing."""

    pass


class CacheError(QueryCacheError):
    """Base exception for cache-related errors."""

    pass


class StorageError(CacheError):
    """Raised when a storage backend operation fails."""

    def __init__(self, backend: str, operation: str, details: dict[str, Any] | None = None):
        message = f"Storage backend '{backend}' failed during {operation}"
        super().__init__(message, details)
        self.backend = backend
        self.operation = operation


class CacheMissError(CacheError):
    """Raised when a key has no usable entry in storage."""

    def __init__(self, key: str):
        super().__init__(f"missing key on storage: {key}", {"key": key})
        self.key = key


class SerializationError(CacheError):
    """Raised when a value cannot be encoded to or decoded from bytes."""

    pass


def extract_error_code(error: Exception) -> ErrorCode:
    """
    Extract the appropriate ErrorCode from an exception.

    Args:
        error: Exception to categorize

    Returns:
        Appropriate ErrorCode for the exception
    """
    if isinstance(error, ConfigurationError):
        return ErrorCode.CONFIGURATION_ERROR

    if isinstance(error, CacheMissError):
        return ErrorCode.CACHE_MISS

    if isinstance(error, StorageError):
        return ErrorCode.STORAGE_ERROR

    if isinstance(error, SerializationError):
        return ErrorCode.SERIALIZATION_ERROR

    if isinstance(error, CacheError):
        return ErrorCode.CACHE_FAILURE

    return ErrorCode.INTERNAL_ERROR
