"""
Query Cache — Read-through cache for SQL queries

Serves query results from a key/value store when possible and populates
it after executing against the database otherwise.

Usage:
    from query_cache import create_cached_executor, cache_overrides

    cached = create_cached_executor(engine)
    rows = await cached.fetch_all(select(users).where(users.c.id == 42))

    with cache_overrides(ttl=60):
        row = await cached.fetch_one(select(users).where(users.c.id == 42))
"""

__version__ = "1.0.0"

from .config import QueryCacheConfig, SerializerKind, StorageBackend, StorageConfig, get_config, load_config
from .errors import (
    CacheError,
    CacheMissError,
    ConfigurationError,
    QueryCacheError,
    SerializationError,
    StorageError,
)
from .executor import QueryExecutor, SQLAlchemyExecutor
from .identifier import build_identifier, format_parameters
from .logging_setup import setup_logging
from .orchestrator import CachedQueryExecutor, create_cached_executor
from .overrides import CacheOverrides, cache_overrides, get_key, get_ttl, with_key, with_ttl
from .serializers import JSONSerializer, MsgPackSerializer, Serializer, get_serializer
from .statement import CompiledQuery, compile_statement
from .storage import StorageInterface, close_all_storages, create_storage, get_storage

__all__ = [
    # Orchestrator
    "CachedQueryExecutor",
    "create_cached_executor",
    # Execution boundary
    "QueryExecutor",
    "SQLAlchemyExecutor",
    "CompiledQuery",
    "compile_statement",
    "build_identifier",
    "format_parameters",
    # Overrides
    "CacheOverrides",
    "cache_overrides",
    "with_key",
    "with_ttl",
    "get_key",
    "get_ttl",
    # Serializers
    "Serializer",
    "JSONSerializer",
    "MsgPackSerializer",
    "get_serializer",
    # Storage
    "StorageInterface",
    "create_storage",
    "get_storage",
    "close_all_storages",
    # Configuration
    "QueryCacheConfig",
    "StorageConfig",
    "StorageBackend",
    "SerializerKind",
    "load_config",
    "get_config",
    "setup_logging",
    # Errors
    "QueryCacheError",
    "ConfigurationError",
    "CacheError",
    "CacheMissError",
    "StorageError",
    "SerializationError",
]
