"""
Query Cache — Storage Factory

Canonical factory for creating storage backends from configuration.

Key points:
- Backend selected with CACHE_BACKEND=memory|redis (memory by default,
  redis when REDIS_URL is set)
- Named instances are registered so the same backend is shared by name
- Redis is imported lazily so the memory backend has no redis dependency

Examples:
    from query_cache.storage import create_storage

    storage = create_storage()

    from query_cache.config import QueryCacheConfig, StorageConfig, StorageBackend
    cfg = QueryCacheConfig(storage=StorageConfig(backend=StorageBackend.MEMORY, max_size=100))
    test_storage = create_storage(cfg, name="test")
"""

from __future__ import annotations

import logging

from ..config import QueryCacheConfig, StorageBackend, get_config
from ..errors import ConfigurationError
from .backends.memory import MemoryStorage
from .interface import StorageInterface

logger = logging.getLogger(__name__)

# Global storage instances registry
_storage_instances: dict[str, StorageInterface] = {}


def _create_memory_storage(config: QueryCacheConfig) -> StorageInterface:
    return MemoryStorage(max_size=config.storage.max_size)


def _create_redis_storage(config: QueryCacheConfig) -> StorageInterface:
    """Construct a redis backend with a lazy import."""
    if not config.storage.redis_url:
        raise ConfigurationError(
            "REDIS_URL must be set when CACHE_BACKEND=redis",
            details={"env": "REDIS_URL", "backend": "redis"},
        )

    try:
        from .backends.redis import RedisStorage
    except ImportError as e:
        logger.error(
            "Redis backend selected but redis client is not installed",
            extra={"package": "redis>=5.0.0", "error": str(e)},
        )
        raise ConfigurationError(
            "Redis backend selected but redis client is unavailable. Install with: pip install 'redis>=5.0.0'",
            details={"package": "redis>=5.0.0", "error": str(e), "backend": "redis"},
        ) from e

    return RedisStorage(
        redis_url=config.storage.redis_url,
        max_connections=config.storage.redis_max_connections,
        socket_timeout=config.storage.redis_socket_timeout,
        clear_pattern=f"{config.prefix}*",
    )


def create_storage(
    config: QueryCacheConfig | None = None,
    name: str = "default",
) -> StorageInterface:
    """
    Create a storage backend instance based on configuration.

    Args:
        config: Configuration (uses global config if not provided)
        name: Instance name (for multiple storage instances)

    Returns:
        Configured storage backend instance

    Raises:
        ConfigurationError: If configuration is invalid or backend unavailable
    """
    if name in _storage_instances:
        logger.debug("Returning existing storage instance: %s", name)
        return _storage_instances[name]

    if config is None:
        config = get_config()

    backend = config.storage.backend
    logger.info(
        "Creating storage instance '%s' with backend: %s",
        name,
        backend.value,
        extra={"storage_name": name, "backend": backend.value},
    )

    if backend == StorageBackend.MEMORY:
        storage = _create_memory_storage(config)
    elif backend == StorageBackend.REDIS:
        storage = _create_redis_storage(config)
    else:
        raise ConfigurationError(
            f"Unknown storage backend: {backend}",
            details={"backend": str(backend), "supported": [b.value for b in StorageBackend]},
        )

    _storage_instances[name] = storage
    return storage


def get_storage(name: str = "default") -> StorageInterface:
    """
    Get an existing storage instance by name, creating it from the global
    configuration if it does not exist yet.
    """
    if name not in _storage_instances:
        logger.debug("Storage instance '%s' not found, creating new instance", name)
        return create_storage(name=name)

    return _storage_instances[name]


async def close_all_storages() -> None:
    """
    Close all storage instances and release resources.

    Call during graceful shutdown.
    """
    if not _storage_instances:
        logger.debug("No storage instances to close")
        return

    logger.info("Closing %d storage instance(s)...", len(_storage_instances))

    for name, storage in list(_storage_instances.items()):
        try:
            await storage.close()
            logger.info("Closed storage instance: %s", name)
        except Exception as e:
            logger.error(
                "Error closing storage instance '%s': %s",
                name,
                e,
                extra={"storage_name": name, "error": str(e)},
                exc_info=True,
            )

    _storage_instances.clear()
    logger.info("All storage instances closed")


def reset_storage_factory() -> None:
    """
    Clear all instance references without closing them.

    Warning: Only use this in testing contexts.
    """
    count = len(_storage_instances)
    _storage_instances.clear()
    logger.debug("Reset storage factory, cleared %d instance reference(s)", count)


def list_storage_instances() -> list[str]:
    """List all registered storage instance names."""
    return list(_storage_instances.keys())
