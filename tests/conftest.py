"""
Query Cache — Test Configuration and Shared Fixtures

Provides pytest configuration and shared fixtures for unit and integration tests.
"""

import os
from collections.abc import Generator
from typing import Any

import pytest
from sqlalchemy.dialects import sqlite
from sqlalchemy.engine import Dialect

from query_cache.errors import StorageError
from query_cache.executor import QueryExecutor
from query_cache.statement import CompiledQuery
from query_cache.storage.backends.memory import MemoryStorage

os.environ["LOG_LEVEL"] = "DEBUG"


class RecordingExecutor(QueryExecutor):
    """In-memory QueryExecutor returning canned rows and recording each call."""

    def __init__(self, rows: list[dict[str, Any]] | None = None, error: Exception | None = None):
        self.rows = rows if rows is not None else []
        self.error = error
        self.calls: list[tuple[str, CompiledQuery]] = []

    @property
    def dialect(self) -> Dialect:
        return sqlite.dialect()

    async def fetch_all(self, query, params=None, *, model=None):  # type: ignore[no-untyped-def]
        compiled = self.prepare(query, params)
        self.calls.append(("all", compiled))
        if self.error is not None:
            raise self.error
        return [dict(row) for row in self.rows]

    async def fetch_one(self, query, params=None, *, model=None):  # type: ignore[no-untyped-def]
        compiled = self.prepare(query, params)
        self.calls.append(("one", compiled))
        if self.error is not None:
            raise self.error
        return dict(self.rows[0]) if self.rows else None


class RecordingStorage(MemoryStorage):
    """MemoryStorage that records writes and can simulate backend faults."""

    def __init__(self) -> None:
        super().__init__(max_size=100)
        self.set_calls: list[tuple[str, bytes, float]] = []
        self.delete_calls: list[str] = []
        self.fail_get = False
        self.fail_set = False
        self.empty_get = False

    async def get(self, key: str) -> bytes | None:
        if self.fail_get:
            raise StorageError(self.name, "get", {"key": key})
        if self.empty_get:
            return b""
        return await super().get(key)

    async def set(self, key: str, value: bytes, ttl: float) -> None:
        self.set_calls.append((key, value, ttl))
        if self.fail_set:
            raise StorageError(self.name, "set", {"key": key})
        await super().set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        self.delete_calls.append(key)
        return await super().delete(key)


@pytest.fixture
def test_redis_url() -> str:
    """Redis URL for testing (database 15 for isolation)."""
    return os.environ.get("TEST_REDIS_URL", "redis://localhost:6379/15")


@pytest.fixture
def user_rows() -> list[dict[str, Any]]:
    """Rows as the executor materializes them."""
    return [
        {"id": 42, "name": "Alice", "email": "alice@example.com", "active": True},
    ]


@pytest.fixture
def executor(user_rows: list[dict[str, Any]]) -> RecordingExecutor:
    return RecordingExecutor(rows=user_rows)


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def mock_env_memory(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment for a memory-backed cache."""
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.setenv("CACHE_MAX_SIZE", "100")
    monkeypatch.setenv("QUERY_CACHE_TTL_SECONDS", "600")
    monkeypatch.setenv("QUERY_CACHE_PREFIX", "test:")


@pytest.fixture(autouse=True)
def reset_global_state() -> Generator[None, None, None]:
    """Reset factory registry and loaded config after each test to prevent state leakage."""
    yield
    from query_cache.config import reset_config
    from query_cache.storage.factory import reset_storage_factory

    reset_storage_factory()
    reset_config()


@pytest.fixture
def make_executor() -> type[RecordingExecutor]:
    """RecordingExecutor class, for tests that need custom rows or errors."""
    return RecordingExecutor
