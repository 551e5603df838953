"""
Query Cache — Per-call Overrides

A query can override its cache key and TTL in two ways:

1. Explicitly, by passing a CacheOverrides value to the fetch call.
2. Ambiently, by wrapping the call in ``with cache_overrides(...)``.
   The orchestrator consumes the ambient value when it handles the next
   query, so it applies to exactly one query invocation.

An explicit value always wins over an ambient one.

Usage:
    rows = await cached.fetch_all(stmt, overrides=CacheOverrides(ttl=60))

    with cache_overrides(key="users:active"):
        rows = await cached.fetch_all(stmt)
"""

import contextvars
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import timedelta

_overrides_ctx: contextvars.ContextVar["CacheOverrides | None"] = contextvars.ContextVar(
    "query_cache_overrides", default=None
)


def to_seconds(ttl: float | timedelta) -> float:
    """Normalize a TTL given as seconds or timedelta to float seconds."""
    if isinstance(ttl, timedelta):
        return ttl.total_seconds()
    return float(ttl)


@dataclass(frozen=True)
class CacheOverrides:
    """
    Optional key and TTL overrides for a single query.

    An override key is used verbatim; the configured prefix is not applied.
    An empty string is a valid override and is distinguished from "absent".
    """

    key: str | None = None
    ttl: float | timedelta | None = field(default=None)

    def __post_init__(self) -> None:
        if self.ttl is not None:
            seconds = to_seconds(self.ttl)
            if seconds <= 0:
                raise ValueError(f"override ttl must be positive, got {seconds}s")
            object.__setattr__(self, "ttl", seconds)

    def key_override(self) -> tuple[str, bool]:
        """Return (key, present)."""
        if self.key is None:
            return "", False
        return self.key, True

    def ttl_override(self) -> tuple[float, bool]:
        """Return (ttl_seconds, present)."""
        if self.ttl is None:
            return 0.0, False
        return float(self.ttl), True  # type: ignore[arg-type]

    def merge(self, fallback: "CacheOverrides | None") -> "CacheOverrides":
        """Fill fields absent here from fallback."""
        if fallback is None:
            return self
        return CacheOverrides(
            key=self.key if self.key is not None else fallback.key,
            ttl=self.ttl if self.ttl is not None else fallback.ttl,
        )


NO_OVERRIDES = CacheOverrides()


@contextmanager
def cache_overrides(
    key: str | None = None,
    ttl: float | timedelta | None = None,
) -> Generator[CacheOverrides, None, None]:
    """
    Attach overrides to the ambient context for the next query.

    Nested scopes merge with the enclosing one; inner values win.
    """
    overrides = CacheOverrides(key=key, ttl=ttl).merge(_overrides_ctx.get())
    token = _overrides_ctx.set(overrides)
    try:
        yield overrides
    finally:
        _overrides_ctx.reset(token)


@contextmanager
def with_key(key: str) -> Generator[CacheOverrides, None, None]:
    """Override the cache key for the next query."""
    with cache_overrides(key=key) as overrides:
        yield overrides


@contextmanager
def with_ttl(ttl: float | timedelta) -> Generator[CacheOverrides, None, None]:
    """Override the TTL for the next query."""
    with cache_overrides(ttl=ttl) as overrides:
        yield overrides


def current_overrides() -> CacheOverrides | None:
    """Return the ambient overrides without consuming them."""
    return _overrides_ctx.get()


def consume_overrides() -> CacheOverrides | None:
    """Return the ambient overrides and clear them for the rest of the scope."""
    overrides = _overrides_ctx.get()
    if overrides is not None:
        _overrides_ctx.set(None)
    return overrides


def get_key() -> tuple[str, bool]:
    """Return the ambient key override as (key, present)."""
    overrides = _overrides_ctx.get()
    return (overrides or NO_OVERRIDES).key_override()


def get_ttl() -> tuple[float, bool]:
    """Return the ambient TTL override as (ttl_seconds, present)."""
    overrides = _overrides_ctx.get()
    return (overrides or NO_OVERRIDES).ttl_override()
