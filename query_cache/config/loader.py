"""
Query Cache — Configuration Loader

Loads and validates configuration from environment variables and .env files.
Provides a singleton configuration instance for the runtime.
"""

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schemas import QueryCacheConfig

logger = logging.getLogger(__name__)

_config_instance: QueryCacheConfig | None = None


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


def load_config(
    env_file: str | None = None,
    reload: bool = False,
) -> QueryCacheConfig:
    """
    Load configuration from environment variables and .env file.

    The key generator cannot be expressed as an environment variable;
    construct QueryCacheConfig directly to supply one.

    Args:
        env_file: Path to .env file (default: .env in current directory)
        reload: Force reload even if config already loaded

    Returns:
        Validated QueryCacheConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    env_path = Path(env_file) if env_file else Path.cwd() / ".env"

    if env_path.exists():
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
    else:
        logger.debug("No .env file found, using environment variables only")

    # Auto-detect storage backend: Redis if REDIS_URL is set, else memory
    redis_url = os.getenv("REDIS_URL")
    storage_backend = "redis" if redis_url else "memory"

    config_dict: dict[str, Any] = {
        "prefix": os.getenv("QUERY_CACHE_PREFIX"),
        "ttl_seconds": os.getenv("QUERY_CACHE_TTL_SECONDS"),
        "serializer": os.getenv("QUERY_CACHE_SERIALIZER", "json").lower(),
        "delete_corrupt_entries": _env_bool("QUERY_CACHE_DELETE_CORRUPT", "true"),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "storage": {
            "backend": os.getenv("CACHE_BACKEND", storage_backend).lower(),
            "max_size": os.getenv("CACHE_MAX_SIZE", "10000"),
            "redis_url": redis_url,
            "redis_max_connections": os.getenv("REDIS_MAX_CONNECTIONS", "10"),
            "redis_socket_timeout": os.getenv("REDIS_SOCKET_TIMEOUT", "5"),
        },
    }

    try:
        _config_instance = QueryCacheConfig(**config_dict)
        logger.info(
            "Configuration loaded successfully",
            extra={
                "storage_backend": _config_instance.storage.backend.value,
                "serializer": _config_instance.serializer.value,
                "ttl_seconds": _config_instance.ttl_seconds,
            },
        )
        return _config_instance
    except ValidationError as e:
        logger.error(
            f"Configuration validation failed: {e}",
            extra={"validation_errors": e.errors(), "config_dict_keys": list(config_dict.keys())},
            exc_info=True,
        )
        raise ConfigurationError(
            "Configuration validation failed. Check your environment variables and configuration.",
            details={"validation_errors": e.errors()},
        ) from e


def get_config() -> QueryCacheConfig:
    """
    Get the current configuration instance, loading it on first access.

    Returns:
        Current QueryCacheConfig instance
    """
    if _config_instance is None:
        return load_config()

    return _config_instance


def reload_config(env_file: str | None = None) -> QueryCacheConfig:
    """
    Force reload configuration.

    Args:
        env_file: Optional path to .env file

    Returns:
        Reloaded QueryCacheConfig instance
    """
    return load_config(env_file=env_file, reload=True)


def reset_config() -> None:
    """Drop the cached configuration instance. Intended for tests."""
    global _config_instance
    _config_instance = None
