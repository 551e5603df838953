"""
Query Cache — Typed Scalar Tags

Column values that neither JSON nor MessagePack represent natively are
written with a type tag, so a payload decodes back to values equal to the
ones that were encoded even when no destination type is given.

Enum members are tagged with their class path and restored only from
modules that are already imported; a payload never triggers an import.
"""

import sys
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from ..errors import SerializationError


def _timedelta_to_text(value: timedelta) -> str:
    return f"{value.days}:{value.seconds}:{value.microseconds}"


def _timedelta_from_text(text: str) -> timedelta:
    days, seconds, microseconds = (int(part) for part in text.split(":"))
    return timedelta(days=days, seconds=seconds, microseconds=microseconds)


# datetime must come before date: it is a date subclass
SCALAR_TAGS: tuple[tuple[type, str, Callable[[Any], str], Callable[[str], Any]], ...] = (
    (Decimal, "decimal", str, Decimal),
    (datetime, "datetime", datetime.isoformat, datetime.fromisoformat),
    (date, "date", date.isoformat, date.fromisoformat),
    (time, "time", time.isoformat, time.fromisoformat),
    (timedelta, "timedelta", _timedelta_to_text, _timedelta_from_text),
    (UUID, "uuid", str, UUID),
)

_DECODERS = {tag: decode for _, tag, _, decode in SCALAR_TAGS}


def scalar_to_text(value: Any) -> tuple[str, str] | None:
    """Return (tag, text) for a tagged scalar type, None for anything else."""
    for kind, tag, encode, _ in SCALAR_TAGS:
        if isinstance(value, kind):
            return tag, encode(value)
    return None


def scalar_from_text(tag: str, text: str) -> Any:
    """Inverse of scalar_to_text."""
    try:
        decode = _DECODERS[tag]
    except KeyError:
        raise SerializationError(f"Unknown scalar tag: {tag}", details={"tag": tag}) from None
    return decode(text)


def enum_path(member: Enum) -> str:
    cls = type(member)
    return f"{cls.__module__}:{cls.__qualname__}"


def resolve_enum(path: str) -> type[Enum]:
    """
    Look up an Enum class by "module:QualName".

    Raises:
        SerializationError: If the module is not imported or the path
            does not name an Enum class
    """
    module_name, _, qualname = path.partition(":")
    target: Any = sys.modules.get(module_name)
    if target is None:
        raise SerializationError(
            f"Enum module is not imported: {module_name}",
            details={"enum": path},
        )

    for part in qualname.split("."):
        target = getattr(target, part, None)

    if not (isinstance(target, type) and issubclass(target, Enum)):
        raise SerializationError(f"Not an Enum class: {path}", details={"enum": path})
    return target
