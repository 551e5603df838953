"""
Query Cache — Configuration Schemas

Typed configuration models using Pydantic for validation.
All configuration is defined here and validated when the cache is built,
so misconfiguration is rejected at startup rather than at query time.
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "gobp:cache:"
DEFAULT_TTL_SECONDS = 3600


def identity_key(identifier: str) -> str:
    """Default key generator: use the query identifier unchanged."""
    return identifier


class StorageBackend(str, Enum):
    """Supported storage backends."""

    MEMORY = "memory"
    REDIS = "redis"


class SerializerKind(str, Enum):
    """Supported payload encodings."""

    JSON = "json"
    MSGPACK = "msgpack"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageConfig(BaseModel):
    """Storage backend configuration."""

    backend: StorageBackend = Field(default=StorageBackend.MEMORY, description="Storage backend to use")
    max_size: int = Field(default=10_000, ge=1, description="Max entries (memory backend)")

    # Redis-specific settings (only used when backend=redis)
    redis_url: str | None = Field(default=None, description="Redis connection URL")
    redis_max_connections: int = Field(default=10, ge=1, description="Redis connection pool size")
    redis_socket_timeout: int = Field(default=5, ge=1, description="Redis socket timeout in seconds")

    @model_validator(mode="after")
    def validate_redis_url(self) -> "StorageConfig":
        """Ensure redis_url is provided when backend is redis."""
        if self.backend == StorageBackend.REDIS and not self.redis_url:
            raise ValueError("redis_url is required when storage backend is 'redis'")
        return self


class QueryCacheConfig(BaseModel):
    """Root configuration for the query cache."""

    prefix: str = Field(default=DEFAULT_PREFIX, description="Prefix prepended to generated cache keys")
    ttl_seconds: float = Field(default=DEFAULT_TTL_SECONDS, description="Default time-to-live in seconds")
    serializer: SerializerKind = Field(default=SerializerKind.JSON, description="Payload encoding")
    key_generator: Callable[[str], str] = Field(
        default=identity_key,
        description="Maps a query identifier to the key suffix (e.g. a hash function)",
    )
    delete_corrupt_entries: bool = Field(
        default=True,
        description="Delete entries that fail to deserialize instead of leaving them for overwrite",
    )
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")

    storage: StorageConfig = Field(default_factory=StorageConfig)

    @field_validator("prefix", mode="before")
    @classmethod
    def default_empty_prefix(cls, v: Any) -> Any:
        """An empty prefix falls back to the default prefix."""
        if v is None or v == "":
            return DEFAULT_PREFIX
        return v

    @field_validator("ttl_seconds", mode="before")
    @classmethod
    def default_non_positive_ttl(cls, v: Any) -> Any:
        """Non-positive or missing TTLs are replaced by the default TTL."""
        if v is None:
            return DEFAULT_TTL_SECONDS
        try:
            seconds = float(v.total_seconds()) if hasattr(v, "total_seconds") else float(v)
        except (TypeError, ValueError):
            return v  # let pydantic report the type error
        if seconds <= 0:
            logger.warning(
                f"Non-positive default TTL {seconds}s replaced with {DEFAULT_TTL_SECONDS}s",
                extra={"ttl_seconds": seconds, "default_ttl_seconds": DEFAULT_TTL_SECONDS},
            )
            return DEFAULT_TTL_SECONDS
        return seconds

    @field_validator("key_generator", mode="before")
    @classmethod
    def default_key_generator(cls, v: Any) -> Any:
        """A missing key generator falls back to the identity function."""
        return identity_key if v is None else v

    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)
