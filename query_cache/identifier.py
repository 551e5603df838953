"""
Query Cache — Identifier Builder

Derives a deterministic identity string for a finalized query:

    "<sql>-<formatted params>"

e.g. ``SELECT * FROM users WHERE id = ? -[42]``.
"""

from collections.abc import Mapping
from typing import Any

from .statement import CompiledQuery

SEPARATOR = "-"


def format_value(value: Any) -> str:
    """Stable textual form of a single bound value."""
    if isinstance(value, Mapping):
        items = ", ".join(f"{format_value(k)}: {format_value(v)}" for k, v in value.items())
        return "{" + items + "}"
    if isinstance(value, (set, frozenset)):
        # iteration order of sets depends on hash seeds
        return "{" + ", ".join(sorted(format_value(v) for v in value)) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(format_value(v) for v in value) + "]"
    return repr(value)


def format_parameters(params: Any) -> str:
    """Format an ordered parameter list (or named mapping)."""
    if isinstance(params, Mapping):
        return format_value(params)
    return format_value(list(params))


def build_identifier(query: CompiledQuery) -> str:
    """
    Build the identifier for a finalized query.

    Never compiles; the caller passes SQL that is already in its final form.
    """
    return f"{query.sql}{SEPARATOR}{format_parameters(query.params)}"
