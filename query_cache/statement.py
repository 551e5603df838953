"""
Query Cache — Statement Finalization

Turns an SQLAlchemy statement into its final driver-level form exactly
once. The same CompiledQuery is used to build the cache identifier and,
on a miss, to execute the query, so compilation never happens twice.

Finalization applies what SQLAlchemy would otherwise apply at execution
time: expanding parameters are rendered, bound values go through their
type's bind processor (Enum members become their stored value, SQLite
datetimes become strings...), and the result column types are kept so
fetched rows can go through the matching result processors.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.engine import Dialect
from sqlalchemy.sql import ClauseElement
from sqlalchemy.sql.compiler import SQLCompiler
from sqlalchemy.types import TupleType

Params = tuple[Any, ...] | dict[str, Any]
ResultProcessor = Callable[[Any], Any] | None


@dataclass(frozen=True)
class CompiledQuery:
    """
    Finalized SQL text with its ordered bound parameters.

    ``sql`` uses the driver's native paramstyle (``?``, ``%s``, ``:name``...).
    ``params`` is a tuple for positional paramstyles and a dict, in bind
    order, for named ones, holding values already converted for the driver.
    ``result_processors`` holds one converter (or None) per result column;
    it is empty for raw SQL, whose rows are returned as the driver gives them.
    """

    sql: str
    params: Params = ()
    result_processors: tuple[ResultProcessor, ...] = field(default=(), compare=False, repr=False)

    @classmethod
    def of(cls, sql: str, params: Sequence[Any] | Mapping[str, Any] | None = None) -> "CompiledQuery":
        """Build from raw driver-level SQL and parameters."""
        if params is None:
            return cls(sql, ())
        if isinstance(params, Mapping):
            return cls(sql, dict(params))
        if isinstance(params, (str, bytes)):
            raise TypeError("params must be a sequence or mapping, not a string")
        return cls(sql, tuple(params))

    def process_row(self, keys: Sequence[str], row: Sequence[Any]) -> dict[str, Any]:
        """Map a raw driver row to {column: value}, applying result processors."""
        if len(self.result_processors) != len(row):
            return dict(zip(keys, row))
        return {
            key: processor(value) if processor is not None else value
            for key, processor, value in zip(keys, self.result_processors, row)
        }


def _bind_processors(compiled: SQLCompiler) -> dict[str, Callable[[Any], Any]]:
    """Bind processors keyed by the parameter names construct_params uses."""
    dialect = compiled.dialect
    escaped = compiled.escaped_bind_names or {}
    processors = {}
    for bind, name in compiled.bind_names.items():
        if isinstance(bind.type, TupleType):
            continue
        processor = bind.type.dialect_impl(dialect).bind_processor(dialect)
        if processor is not None:
            processors[escaped.get(name, name)] = processor
    return processors


def _result_processors(statement: ClauseElement, dialect: Dialect) -> tuple[ResultProcessor, ...]:
    columns = getattr(statement, "selected_columns", None)
    if columns is None:
        return ()
    return tuple(column.type.dialect_impl(dialect).result_processor(dialect, None) for column in columns)


def compile_statement(statement: ClauseElement, dialect: Dialect) -> CompiledQuery:
    """
    Compile an SQLAlchemy statement for the given dialect.

    Expanding parameters (``IN`` lists) are rendered as individual
    placeholders so the resulting SQL can be sent to the driver unchanged.

    Args:
        statement: Select or other executable clause
        dialect: Dialect of the connection that will run the query

    Returns:
        CompiledQuery with driver-level SQL and processed bound values
    """
    compiled = statement.compile(dialect=dialect)
    expanded = compiled.construct_expanded_state()

    processors = {**_bind_processors(compiled), **expanded.processors}
    bound = {
        name: processors[name](value) if name in processors else value
        for name, value in expanded.parameters.items()
    }
    result_processors = _result_processors(statement, dialect)

    if compiled.positional:
        names = expanded.positiontup or []
        return CompiledQuery(expanded.statement, tuple(bound[name] for name in names), result_processors)

    return CompiledQuery(expanded.statement, bound, result_processors)
