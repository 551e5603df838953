"""
Query Cache — Cache Orchestrator

CachedQueryExecutor is a QueryExecutor that wraps another QueryExecutor
and serves results from storage when it can.

Per query:
1. Resolve TTL: override, else configured default
2. Resolve key: override verbatim, else prefix + key_generator(identifier)
3. Read storage; any read error, empty payload or undecodable payload
   is a miss
4. On a miss run the wrapped executor with the same finalized query;
   its errors propagate unchanged and nothing is written
5. Write the result back; write failures are logged, never raised

There is no locking and no single-flight: concurrent misses on one key
each execute the query and each write back (last write wins).
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.engine import Dialect
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from .config import QueryCacheConfig, get_config
from .errors import CacheMissError, SerializationError
from .executor import (
    ParamsLike,
    QueryExecutor,
    QueryLike,
    SQLAlchemyExecutor,
    all_rows_type,
    one_row_type,
)
from .identifier import build_identifier
from .overrides import NO_OVERRIDES, CacheOverrides, consume_overrides
from .serializers import Serializer, get_serializer
from .statement import CompiledQuery
from .storage import StorageInterface, create_storage

logger = logging.getLogger(__name__)

_MISS = (False, None)


class CachedQueryExecutor(QueryExecutor):
    """
    Read-through cache in front of a QueryExecutor.

    The orchestrator owns its serializer. It owns its storage unless the
    storage is shared through the factory registry.
    """

    def __init__(
        self,
        inner: QueryExecutor,
        storage: StorageInterface,
        serializer: Serializer,
        config: QueryCacheConfig | None = None,
        owns_storage: bool = True,
    ):
        """
        Args:
            inner: Executor that runs queries against the database
            storage: Key/value backend holding encoded results
            serializer: Payload encoding
            config: Prefix, default TTL, key generator and corrupt-entry
                policy (defaults when omitted)
            owns_storage: Whether close() closes the storage. False for
                storages shared through the storage factory registry
        """
        config = config or QueryCacheConfig()

        self.inner = inner
        self.storage = storage
        self.owns_storage = owns_storage
        self.serializer = serializer
        self.prefix = config.prefix
        self.default_ttl = config.ttl_seconds
        self.key_generator = config.key_generator
        self.delete_corrupt_entries = config.delete_corrupt_entries

        self._hits = 0
        self._misses = 0
        self._storage_errors = 0
        self._deserialize_errors = 0
        self._executions = 0
        self._writes = 0
        self._write_errors = 0

    @property
    def name(self) -> str:
        return "query_cache"

    @property
    def dialect(self) -> Dialect:
        return self.inner.dialect

    # ------------ Key / TTL resolution ------------

    def _effective_overrides(self, overrides: CacheOverrides | None) -> CacheOverrides:
        ambient = consume_overrides()
        return (overrides or NO_OVERRIDES).merge(ambient)

    def resolve_ttl(self, overrides: CacheOverrides) -> float:
        ttl, has_ttl = overrides.ttl_override()
        if not has_ttl:
            logger.debug("using default TTL", extra={"ttl_seconds": self.default_ttl})
            return self.default_ttl
        return ttl

    def resolve_key(self, query: CompiledQuery, overrides: CacheOverrides) -> str:
        key, has_key = overrides.key_override()
        if not has_key:
            key = self.prefix + self.key_generator(build_identifier(query))
        return key

    def build_key(
        self,
        query: QueryLike,
        params: ParamsLike = None,
        *,
        overrides: CacheOverrides | None = None,
    ) -> str:
        """Return the cache key a query would use. Ambient overrides are ignored."""
        return self.resolve_key(self.prepare(query, params), overrides or NO_OVERRIDES)

    # ------------ Storage round trips ------------

    async def load(self, key: str, destination: Any = None) -> Any:
        """
        Decode the entry stored under key.

        Raises:
            CacheMissError: If there is no entry or it is empty
            StorageError: If the backend could not be read
            SerializationError: If the entry cannot be decoded into destination
        """
        payload = await self.storage.get(key)
        if not payload:
            raise CacheMissError(key)
        return self.serializer.deserialize(payload, destination)

    async def store(self, key: str, value: Any, ttl: float) -> None:
        """
        Encode value and write it under key.

        Raises:
            SerializationError: If the value cannot be encoded
            StorageError: If the backend could not be written
        """
        payload = self.serializer.serialize(value)
        await self.storage.set(key, payload, ttl)

    async def _read(self, key: str, destination: Any) -> tuple[bool, Any]:
        """Return (hit, value). Every failure here is a miss."""
        try:
            value = await self.load(key, destination)
        except CacheMissError:
            self._misses += 1
            return _MISS
        except SerializationError as e:
            self._deserialize_errors += 1
            self._misses += 1
            logger.warning(
                f"Cached entry could not be decoded, treating as miss: {e}",
                extra={"key": key, "serializer": self.serializer.name, "error": str(e)},
            )
            if self.delete_corrupt_entries:
                await self._discard(key)
            return _MISS
        except Exception as e:
            self._storage_errors += 1
            self._misses += 1
            logger.warning(
                f"Storage read failed, treating as miss: {e}",
                extra={"key": key, "backend": self.storage.name, "error": str(e)},
            )
            return _MISS

        self._hits += 1
        return True, value

    async def _discard(self, key: str) -> None:
        try:
            await self.storage.delete(key)
        except Exception as e:
            logger.warning(
                f"Failed to delete corrupt cache entry: {e}",
                extra={"key": key, "backend": self.storage.name, "error": str(e)},
            )

    async def _write(self, key: str, result: Any, ttl: float) -> None:
        try:
            await self.store(key, result, ttl)
        except Exception as e:
            self._write_errors += 1
            logger.error(
                f"Failed to persist query result to cache: {e}",
                extra={"key": key, "ttl_seconds": ttl, "backend": self.storage.name, "error": str(e)},
                exc_info=True,
            )
            return

        self._writes += 1
        logger.debug("cache persisted", extra={"key": key, "ttl_seconds": ttl})

    # ------------ Query paths ------------

    async def fetch_all(
        self,
        query: QueryLike,
        params: ParamsLike = None,
        *,
        model: Any = None,
        overrides: CacheOverrides | None = None,
    ) -> list[Any]:
        """
        Return every row of a query, from cache when possible.

        Args:
            query: SQLAlchemy statement, raw SQL or CompiledQuery
            params: Parameters for raw SQL
            model: Row type (pydantic model, dataclass...); dicts when None
            overrides: Per-call key/TTL overrides

        Raises:
            Whatever the wrapped executor raises on a miss
        """
        compiled = self.prepare(query, params)
        effective = self._effective_overrides(overrides)
        ttl = self.resolve_ttl(effective)
        key = self.resolve_key(compiled, effective)

        hit, cached = await self._read(key, all_rows_type(model))
        if hit:
            logger.debug("from cache", extra={"key": key})
            return cached

        self._executions += 1
        result = await self.inner.fetch_all(compiled, model=model)
        logger.debug("from database", extra={"key": key, "rows": len(result)})

        await self._write(key, result, ttl)
        return result

    async def fetch_one(
        self,
        query: QueryLike,
        params: ParamsLike = None,
        *,
        model: Any = None,
        overrides: CacheOverrides | None = None,
    ) -> Any | None:
        """
        Return the first row of a query, from cache when possible.

        "No row" (None) is cached like any other result.
        """
        compiled = self.prepare(query, params)
        effective = self._effective_overrides(overrides)
        ttl = self.resolve_ttl(effective)
        key = self.resolve_key(compiled, effective)

        hit, cached = await self._read(key, one_row_type(model))
        if hit:
            logger.debug("from cache", extra={"key": key})
            return cached

        self._executions += 1
        result = await self.inner.fetch_one(compiled, model=model)
        logger.debug("from database", extra={"key": key})

        await self._write(key, result, ttl)
        return result

    async def fetch_scalar(
        self,
        query: QueryLike,
        params: ParamsLike = None,
        *,
        overrides: CacheOverrides | None = None,
    ) -> Any | None:
        """Return the first column of the first row, from cache when possible."""
        row = await self.fetch_one(query, params, overrides=overrides)
        if not row:
            return None
        return next(iter(row.values()))

    # ------------ Maintenance ------------

    async def invalidate(
        self,
        query: QueryLike,
        params: ParamsLike = None,
        *,
        overrides: CacheOverrides | None = None,
    ) -> bool:
        """
        Evict the entry a query would be served from.

        Returns:
            True if an entry was deleted

        Raises:
            StorageError: If the backend could not be written
        """
        return await self.invalidate_key(self.build_key(query, params, overrides=overrides))

    async def invalidate_key(self, key: str) -> bool:
        """Evict a single entry by its exact key."""
        deleted = await self.storage.delete(key)
        logger.info("Invalidated cache entry", extra={"key": key, "deleted": deleted})
        return deleted

    async def get_stats(self) -> dict[str, Any]:
        """Orchestrator counters plus the storage backend's own statistics."""
        lookups = self._hits + self._misses
        return {
            "name": self.name,
            "serializer": self.serializer.name,
            "prefix": self.prefix,
            "default_ttl": self.default_ttl,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / lookups * 100, 2) if lookups else 0.0,
            "storage_errors": self._storage_errors,
            "deserialize_errors": self._deserialize_errors,
            "executions": self._executions,
            "writes": self._writes,
            "write_errors": self._write_errors,
            "storage": await self.storage.get_stats(),
        }

    async def close(self) -> None:
        """Close the storage backend if this executor owns it."""
        if not self.owns_storage:
            logger.debug("Storage is shared, leaving it open", extra={"backend": self.storage.name})
            return
        await self.storage.close()


def create_cached_executor(
    inner: QueryExecutor | AsyncEngine | AsyncConnection,
    config: QueryCacheConfig | None = None,
    *,
    storage: StorageInterface | None = None,
    name: str = "default",
) -> CachedQueryExecutor:
    """
    Build a CachedQueryExecutor from configuration.

    Args:
        inner: Executor to wrap; an AsyncEngine or AsyncConnection is
            wrapped in SQLAlchemyExecutor
        config: Configuration (global config when omitted)
        storage: Explicit backend, closed by the executor's close();
            otherwise the named instance from the storage factory registry,
            shared with other executors of that name and closed by
            close_all_storages()
        name: Storage instance name in the factory registry

    Raises:
        ConfigurationError: If the backend or serializer is misconfigured
    """
    if config is None:
        config = get_config()

    if not isinstance(inner, QueryExecutor):
        inner = SQLAlchemyExecutor(inner)

    owns_storage = storage is not None
    if storage is None:
        storage = create_storage(config, name=name)

    serializer = get_serializer(config.serializer)

    logger.info(
        "Query cache enabled",
        extra={
            "backend": storage.name,
            "serializer": serializer.name,
            "prefix": config.prefix,
            "ttl_seconds": config.ttl_seconds,
        },
    )
    return CachedQueryExecutor(inner, storage, serializer, config, owns_storage=owns_storage)
