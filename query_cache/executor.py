"""
Query Cache — Query Execution Boundary

QueryExecutor is the seam the cache wraps: anything that can run a
finalized query and return materialized rows. SQLAlchemyExecutor is the
concrete implementation over an async engine or connection.

Rows are returned as plain dicts (column -> value) unless a destination
model is given, in which case each row is validated into that model.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

from pydantic import TypeAdapter
from sqlalchemy.engine import Dialect
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.sql import ClauseElement

from .statement import CompiledQuery, compile_statement

logger = logging.getLogger(__name__)

QueryLike = CompiledQuery | ClauseElement | str
ParamsLike = Sequence[Any] | Mapping[str, Any] | None


def all_rows_type(model: Any) -> Any:
    """Destination type of a multi-row result."""
    return list[model] if model is not None else list[dict[str, Any]]


def one_row_type(model: Any) -> Any:
    """Destination type of a single-row result (None when no row)."""
    return (model | None) if model is not None else (dict[str, Any] | None)


class QueryExecutor(ABC):
    """
    Abstract query executor.

    Subclasses implement fetch_all and fetch_one for an already finalized
    CompiledQuery. Statement finalization lives here so that decorators
    (such as the caching executor) can finalize once and hand the same
    CompiledQuery to the executor they wrap.
    """

    @property
    @abstractmethod
    def dialect(self) -> Dialect:
        """Dialect used to finalize SQLAlchemy statements."""
        pass

    def prepare(self, query: QueryLike, params: ParamsLike = None) -> CompiledQuery:
        """
        Finalize a query.

        Args:
            query: CompiledQuery (returned as-is), raw driver-level SQL,
                or an SQLAlchemy statement
            params: Parameters for raw SQL; not allowed with other forms

        Returns:
            CompiledQuery ready for identification and execution
        """
        if isinstance(query, CompiledQuery):
            if params is not None:
                raise TypeError("params cannot be combined with a CompiledQuery")
            return query
        if isinstance(query, str):
            return CompiledQuery.of(query, params)
        if params is not None:
            raise TypeError("params cannot be combined with an SQLAlchemy statement; bind them in the statement")
        return compile_statement(query, self.dialect)

    @abstractmethod
    async def fetch_all(self, query: QueryLike, params: ParamsLike = None, *, model: Any = None) -> list[Any]:
        """Execute and return every row."""
        pass

    @abstractmethod
    async def fetch_one(self, query: QueryLike, params: ParamsLike = None, *, model: Any = None) -> Any | None:
        """Execute and return the first row, or None if there is none."""
        pass

    async def fetch_scalar(self, query: QueryLike, params: ParamsLike = None) -> Any | None:
        """Execute and return the first column of the first row."""
        row = await self.fetch_one(query, params)
        if not row:
            return None
        return next(iter(row.values()))


class SQLAlchemyExecutor(QueryExecutor):
    """
    Executor running finalized SQL through SQLAlchemy's async API.

    Uses exec_driver_sql so the compiled text reaches the driver unchanged.
    Bound values arrive already processed by compile_statement; fetched
    rows go through the CompiledQuery's result processors. A bound AsyncEngine gets a fresh connection per query; a bound
    AsyncConnection is reused and left open.
    """

    def __init__(self, bind: AsyncEngine | AsyncConnection):
        self.bind = bind

    @property
    def dialect(self) -> Dialect:
        return self.bind.dialect

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[AsyncConnection]:
        if isinstance(self.bind, AsyncConnection):
            yield self.bind
        else:
            async with self.bind.connect() as conn:
                yield conn

    async def _rows(self, query: CompiledQuery, limit: int | None = None) -> list[dict[str, Any]]:
        async with self._connection() as conn:
            result = await conn.exec_driver_sql(query.sql, query.params)
            keys = list(result.keys())
            if limit == 1:
                first = result.first()
                rows = [first] if first is not None else []
            else:
                rows = result.all()
            return [query.process_row(keys, row) for row in rows]

    async def fetch_all(self, query: QueryLike, params: ParamsLike = None, *, model: Any = None) -> list[Any]:
        compiled = self.prepare(query, params)
        rows = await self._rows(compiled)
        logger.debug("Fetched %d row(s) from database", len(rows), extra={"sql": compiled.sql})
        if model is None:
            return rows
        return TypeAdapter(all_rows_type(model)).validate_python(rows)

    async def fetch_one(self, query: QueryLike, params: ParamsLike = None, *, model: Any = None) -> Any | None:
        compiled = self.prepare(query, params)
        rows = await self._rows(compiled, limit=1)
        row = rows[0] if rows else None
        if model is None or row is None:
            return row
        return TypeAdapter(model).validate_python(row)
