"""
Query Cache — Memory Storage Backend

In-process storage with LRU eviction and per-key expiry.
Suitable for single-process deployments and tests.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Any

from ..interface import StorageInterface

logger = logging.getLogger(__name__)


class MemoryStorage(StorageInterface):
    """
    In-memory storage backend with LRU eviction.

    Features:
    - LRU eviction when max_size is reached
    - Per-key expiry
    - asyncio lock around every operation
    """

    name = "memory"

    def __init__(self, max_size: int = 10_000):
        """
        Initialize memory storage.

        Args:
            max_size: Maximum number of entries (LRU eviction when exceeded)
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self.max_size = max_size

        # key -> (payload, expiry_time)
        self._entries: OrderedDict[str, tuple[bytes, float]] = OrderedDict()

        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._evictions = 0

        self._lock = asyncio.Lock()

    @staticmethod
    def _is_expired(expiry: float) -> bool:
        return time.monotonic() >= expiry

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            value, expiry = entry
            if self._is_expired(expiry):
                del self._entries[key]
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return value

    async def set(self, key: str, value: bytes, ttl: float) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")

        async with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted key from memory storage: {evicted_key}")

            self._entries[key] = (value, time.monotonic() + ttl)
            self._entries.move_to_end(key)
            self._sets += 1

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key in self._entries:
                del self._entries[key]
                self._deletes += 1
                return True
            return False

    async def exists(self, key: str) -> bool:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._is_expired(entry[1]):
                del self._entries[key]
                return False
            return True

    async def clear(self) -> bool:
        async with self._lock:
            size = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared {size} entries from memory storage")
        return True

    async def get_stats(self) -> dict[str, Any]:
        async with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "backend": self.name,
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(hit_rate, 2),
                "sets": self._sets,
                "deletes": self._deletes,
                "evictions": self._evictions,
            }

    async def close(self) -> None:
        # Nothing to release; entries live in-process
        logger.debug("Memory storage backend closed")
