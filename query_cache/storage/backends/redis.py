"""
Query Cache — Redis Storage Backend

Asynchronous Redis storage holding raw payload bytes with per-key expiry.

Requires: redis>=5.0 with asyncio support

Example:
    storage = RedisStorage(redis_url="redis://localhost:6379/0")
    await storage.set("gobp:cache:SELECT 1-[]", b"[]", ttl=60)
    payload = await storage.get("gobp:cache:SELECT 1-[]")
"""

from __future__ import annotations

import logging
from typing import Any

from ...errors import StorageError
from ..interface import StorageInterface

logger = logging.getLogger(__name__)

try:
    from redis.asyncio import Redis
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "Redis async client is required but not installed. "
        "Install with: pip install 'redis>=5.0.0' or add 'redis' to your dependencies."
    ) from e


class RedisStorage(StorageInterface):
    """
    Redis storage backend.

    Notes:
    - Keys are stored exactly as given; the cache key prefix is applied
      by the orchestrator, not here.
    - Expiry uses PX milliseconds so fractional TTLs are honoured.
    - clear() only removes keys matching clear_pattern.
    """

    name = "redis"

    def __init__(
        self,
        redis_url: str,
        max_connections: int = 10,
        socket_timeout: int = 5,
        clear_pattern: str = "*",
    ) -> None:
        """
        Initialize Redis storage backend.

        Args:
            redis_url: Connection URL, e.g., redis://localhost:6379/0 or rediss:// for TLS
            max_connections: Connection pool size
            socket_timeout: Socket timeout in seconds
            clear_pattern: SCAN pattern selecting the keys clear() removes
        """
        if not redis_url:
            raise ValueError("redis_url is required")

        self.clear_pattern = clear_pattern
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

        # Lazy connection; connects on first command
        self._client = Redis.from_url(  # type: ignore[call-overload]
            url=redis_url,
            decode_responses=False,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
        )

    def _fail(self, operation: str, key: str | None, error: Exception) -> StorageError:
        details: dict[str, Any] = {"error": str(error)}
        if key is not None:
            details["key"] = key
        return StorageError(self.name, operation, details)

    async def get(self, key: str) -> bytes | None:
        try:
            data = await self._client.get(key)
        except Exception as e:
            self._misses += 1
            raise self._fail("get", key, e) from e

        if data is None:
            self._misses += 1
            return None

        self._hits += 1
        return bytes(data)

    async def set(self, key: str, value: bytes, ttl: float) -> None:
        px = int(ttl * 1000)
        if px <= 0:
            raise ValueError(f"ttl must be at least one millisecond, got {ttl}")

        try:
            await self._client.set(name=key, value=value, px=px)
        except Exception as e:
            raise self._fail("set", key, e) from e
        self._sets += 1

    async def delete(self, key: str) -> bool:
        try:
            deleted = await self._client.delete(key)
        except Exception as e:
            raise self._fail("delete", key, e) from e
        if deleted:
            self._deletes += 1
        return bool(deleted)

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._client.exists(key))
        except Exception as e:
            raise self._fail("exists", key, e) from e

    async def clear(self) -> bool:
        """Delete every key matching clear_pattern, using SCAN in batches."""
        try:
            cursor = 0
            total_deleted = 0
            batch_size = 1000

            while True:
                cursor, keys = await self._client.scan(cursor=cursor, match=self.clear_pattern, count=batch_size)
                if keys:
                    total_deleted += await self._client.delete(*keys)
                if cursor == 0:
                    break
        except Exception as e:
            raise self._fail("clear", None, e) from e

        self._deletes += total_deleted
        logger.info(f"Cleared {total_deleted} keys matching '{self.clear_pattern}'")
        return True

    async def get_stats(self) -> dict[str, Any]:
        """Return counters and basic Redis info."""
        total_requests = self._hits + self._misses
        stats: dict[str, Any] = {
            "backend": self.name,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round((self._hits / total_requests) * 100, 2) if total_requests else 0.0,
            "sets": self._sets,
            "deletes": self._deletes,
            "connected": False,
        }

        try:
            stats["connected"] = bool(await self._client.ping())
            info = await self._client.info(section="server")
            stats["redis_version"] = info.get("redis_version")
            stats["redis_mode"] = info.get("redis_mode")
        except Exception as e:
            # INFO may be restricted; keep the counters
            logger.warning(f"Failed to get Redis INFO (restricted or unavailable): {e}", extra={"error": str(e)})

        return stats

    async def close(self) -> None:
        """Close the Redis client and release resources."""
        try:
            await self._client.aclose()
            logger.info("Closed Redis storage backend")
        except Exception as e:
            logger.error(f"Error closing Redis client: {e}", extra={"error": str(e)}, exc_info=True)
        finally:
            try:
                await self._client.connection_pool.disconnect()
            except Exception as e:
                logger.warning(f"Error disconnecting Redis connection pool: {e}", extra={"error": str(e)})
