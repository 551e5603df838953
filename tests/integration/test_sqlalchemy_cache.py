"""
Query Cache — SQLAlchemy Integration Tests

Runs the cached executor against a real SQLite database through
SQLAlchemy's async engine (aiosqlite driver).
"""

import enum
from collections.abc import AsyncGenerator
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest
from pydantic import BaseModel
from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from query_cache import (
    CachedQueryExecutor,
    CacheOverrides,
    JSONSerializer,
    MsgPackSerializer,
    QueryCacheConfig,
    SQLAlchemyExecutor,
    cache_overrides,
    create_cached_executor,
)
from query_cache.storage.backends.memory import MemoryStorage

metadata = MetaData()
users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(50), nullable=False),
    Column("team", String(20), nullable=False),
)


class Color(enum.Enum):
    RED = "red"
    BLUE = "blue"


paints = Table(
    "paints",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("color", Enum(Color), nullable=False),
    Column("mixed_at", DateTime, nullable=False),
    Column("price", Numeric(10, 2), nullable=False),
)


class UserRow(BaseModel):
    id: int
    name: str
    team: str


class CountingExecutor(SQLAlchemyExecutor):
    """SQLAlchemyExecutor that counts database round trips."""

    def __init__(self, bind: AsyncEngine):
        super().__init__(bind)
        self.executions = 0

    async def _rows(self, query, limit=None):  # type: ignore[no-untyped-def]
        self.executions += 1
        return await super()._rows(query, limit)


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'users.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
        await conn.execute(
            insert(users),
            [
                {"id": 1, "name": "Alice", "team": "core"},
                {"id": 2, "name": "Bob", "team": "core"},
                {"id": 3, "name": "Carol", "team": "infra"},
            ],
        )
        await conn.execute(
            insert(paints),
            [
                {"id": 1, "color": Color.RED, "mixed_at": datetime(2024, 1, 2), "price": Decimal("9.99")},
                {"id": 2, "color": Color.BLUE, "mixed_at": datetime(2024, 3, 4, 5, 6), "price": Decimal("12.50")},
            ],
        )
    yield engine
    await engine.dispose()


@pytest.fixture
def db(engine: AsyncEngine) -> CountingExecutor:
    return CountingExecutor(engine)


@pytest.fixture
def cached(db: CountingExecutor) -> CachedQueryExecutor:
    return CachedQueryExecutor(db, MemoryStorage(), JSONSerializer())


class TestSQLAlchemyExecutor:
    async def test_fetch_all_returns_dicts(self, db: CountingExecutor) -> None:
        rows = await db.fetch_all(select(users).where(users.c.team == "core").order_by(users.c.id))

        assert rows == [
            {"id": 1, "name": "Alice", "team": "core"},
            {"id": 2, "name": "Bob", "team": "core"},
        ]

    async def test_fetch_one_with_model(self, db: CountingExecutor) -> None:
        row = await db.fetch_one(select(users).where(users.c.id == 3), model=UserRow)

        assert row == UserRow(id=3, name="Carol", team="infra")

    async def test_fetch_one_no_row(self, db: CountingExecutor) -> None:
        assert await db.fetch_one(select(users).where(users.c.id == 99)) is None

    async def test_raw_sql(self, db: CountingExecutor) -> None:
        rows = await db.fetch_all("SELECT name FROM users WHERE id = ?", [2])

        assert rows == [{"name": "Bob"}]

    async def test_bound_connection(self, engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            executor = SQLAlchemyExecutor(conn)
            assert await executor.fetch_scalar(select(func.count()).select_from(users)) == 3


class TestCachedQueries:
    async def test_second_query_served_from_cache(self, cached: CachedQueryExecutor, db: CountingExecutor) -> None:
        stmt = select(users).where(users.c.team == "core").order_by(users.c.id)

        first = await cached.fetch_all(stmt)
        second = await cached.fetch_all(stmt)

        assert first == second
        assert len(first) == 2
        assert db.executions == 1

    async def test_stale_until_invalidated(
        self, cached: CachedQueryExecutor, db: CountingExecutor, engine: AsyncEngine
    ) -> None:
        stmt = select(users.c.name).where(users.c.id == 1)
        assert await cached.fetch_scalar(stmt) == "Alice"

        async with engine.begin() as conn:
            await conn.execute(update(users).where(users.c.id == 1).values(name="Alicia"))

        # Underlying change is not observed until the entry is evicted
        assert await cached.fetch_scalar(stmt) == "Alice"

        await cached.invalidate(stmt)
        assert await cached.fetch_scalar(stmt) == "Alicia"
        assert db.executions == 2

    async def test_in_list_parameters(self, cached: CachedQueryExecutor, db: CountingExecutor) -> None:
        stmt = select(users.c.id).where(users.c.id.in_([1, 3])).order_by(users.c.id)

        assert await cached.fetch_all(stmt) == [{"id": 1}, {"id": 3}]
        assert await cached.fetch_all(stmt) == [{"id": 1}, {"id": 3}]
        assert db.executions == 1

    async def test_key_derived_from_compiled_sql(self, cached: CachedQueryExecutor) -> None:
        key = cached.build_key(select(users.c.id).where(users.c.id == 42))

        assert key.startswith("gobp:cache:SELECT users.id")
        assert key.endswith("-[42]")

    async def test_models_round_trip_through_msgpack(self, db: CountingExecutor) -> None:
        cached = CachedQueryExecutor(db, MemoryStorage(), MsgPackSerializer())
        stmt = select(users).order_by(users.c.id)

        first = await cached.fetch_all(stmt, model=UserRow)
        second = await cached.fetch_all(stmt, model=UserRow)

        assert second == first
        assert all(isinstance(user, UserRow) for user in second)
        assert db.executions == 1

    async def test_overrides(self, cached: CachedQueryExecutor) -> None:
        stmt = select(users).where(users.c.id == 2)

        await cached.fetch_one(stmt, overrides=CacheOverrides(key="user:2"))
        with cache_overrides(key="user:2"):
            row = await cached.fetch_one(select(users).where(users.c.id == 3))

        # served from the entry written under the override key
        assert row == {"id": 2, "name": "Bob", "team": "core"}

    async def test_database_error_propagates(self, cached: CachedQueryExecutor) -> None:
        with pytest.raises(OperationalError):
            await cached.fetch_all("SELECT * FROM missing_table WHERE id = ?", [1])

        stats = await cached.get_stats()
        assert stats["writes"] == 0
        assert stats["storage"]["size"] == 0


class TestColumnTypes:
    """Rows match what SQLAlchemy itself returns for typed columns, cached or not."""

    async def test_typed_columns_returned_processed(self, db: CountingExecutor, engine: AsyncEngine) -> None:
        stmt = select(paints).order_by(paints.c.id)

        async with engine.connect() as conn:
            expected = [dict(row) for row in (await conn.execute(stmt)).mappings()]

        rows = await db.fetch_all(stmt)

        assert rows == expected
        assert rows[0] == {"id": 1, "color": Color.RED, "mixed_at": datetime(2024, 1, 2), "price": Decimal("9.99")}

    async def test_enum_filter(self, db: CountingExecutor) -> None:
        rows = await db.fetch_all(select(paints.c.id).where(paints.c.color == Color.BLUE))

        assert rows == [{"id": 2}]

    async def test_datetime_filter(self, db: CountingExecutor) -> None:
        row = await db.fetch_one(select(paints.c.id).where(paints.c.mixed_at == datetime(2024, 1, 2)))

        assert row == {"id": 1}

    async def test_enum_in_list_filter(self, db: CountingExecutor) -> None:
        stmt = select(paints.c.id).where(paints.c.color.in_([Color.RED, Color.BLUE])).order_by(paints.c.id)

        assert await db.fetch_all(stmt) == [{"id": 1}, {"id": 2}]

    @pytest.mark.parametrize("serializer", [JSONSerializer, MsgPackSerializer], ids=["json", "msgpack"])
    async def test_cache_hit_equals_miss(self, db: CountingExecutor, serializer: type) -> None:
        cached = CachedQueryExecutor(db, MemoryStorage(), serializer())
        stmt = select(paints).where(paints.c.color == Color.BLUE)

        first = await cached.fetch_all(stmt)
        second = await cached.fetch_all(stmt)
        one = await cached.fetch_one(select(paints).where(paints.c.mixed_at == datetime(2024, 3, 4, 5, 6)))
        one_again = await cached.fetch_one(select(paints).where(paints.c.mixed_at == datetime(2024, 3, 4, 5, 6)))

        assert second == first
        assert second[0]["color"] is Color.BLUE
        assert second[0]["price"] == Decimal("12.50")
        assert one_again == one == first[0]
        assert db.executions == 2


class TestCreateCachedExecutor:
    async def test_wraps_engine(self, engine: AsyncEngine) -> None:
        cached = create_cached_executor(engine, QueryCacheConfig(prefix="it:"), name="integration")

        assert isinstance(cached.inner, SQLAlchemyExecutor)
        rows = await cached.fetch_all(select(users.c.id).order_by(users.c.id))
        assert rows == [{"id": 1}, {"id": 2}, {"id": 3}]
        assert cached.prefix == "it:"
