"""
Query Cache — Configuration Module

Provides typed configuration loading and validation.
"""

from .loader import get_config, load_config, reload_config, reset_config
from .schemas import (
    DEFAULT_PREFIX,
    DEFAULT_TTL_SECONDS,
    LogLevel,
    QueryCacheConfig,
    SerializerKind,
    StorageBackend,
    StorageConfig,
    identity_key,
)

__all__ = [
    # Loader functions
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    # Main config
    "QueryCacheConfig",
    "StorageConfig",
    # Enums
    "StorageBackend",
    "SerializerKind",
    "LogLevel",
    # Defaults
    "DEFAULT_PREFIX",
    "DEFAULT_TTL_SECONDS",
    "identity_key",
]
