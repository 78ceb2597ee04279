"""
Write-invalidated query cache.

Reads that go through a :class:`~crudspine.scope.Scope` may be served from
a cache keyed by the signature of the fully rendered statement (SQL text
plus bound parameters). Any write on the scope clears the whole cache
before touching the store, so a read never observes data older than the
scope's last write.

Manifesto:
    Caching must never change results, only their cost.

    - **Protocol-based:** any handle with ``get``/``set``/``clear`` works
    - **Fail fast:** a handle lacking that contract is rejected when the
      scope is built, not on the first cache hit
    - **Coarse invalidation:** one write clears everything; no dependency
      tracking between tables
    - **No aliasing:** cached rows are handed out as copies

Architecture:
    ::

        CacheBackend (Protocol)          get / set / clear [/ delete / exists]
        └── InMemoryCache                bounded LRU with optional TTL

        QueryCache(handle)
          handle is None     → permanent no-op
          handle incomplete  → UnsupportedCacheHandle
          lookup(signature) / store(signature, rows) / invalidate()

        query_signature(sql, params) → SHA-256 hex digest

Examples:
    >>> cache = QueryCache(InMemoryCache(max_size=100))
    >>> sig = query_signature('SELECT * FROM "orders" WHERE "id" = ?', (1,))
    >>> cache.store(sig, [{"id": 1}])
    >>> cache.lookup(sig)
    [{'id': 1}]
    >>> cache.invalidate()
    >>> cache.lookup(sig) is None
    True

Tags:
    cache, caching, lru, ttl, invalidation, crudspine
"""

from __future__ import annotations

import hashlib
import time
from collections import OrderedDict
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from crudspine.errors import UnsupportedCacheHandle
from crudspine.logging import get_logger

logger = get_logger(__name__)

REQUIRED_METHODS = ("get", "set", "clear")


@runtime_checkable
class CacheBackend(Protocol):
    """Protocol for cache handles.

    ``get`` returns ``None`` on a miss. ``delete`` and ``exists`` are part
    of the shipped implementation but not required from third-party
    handles.
    """

    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def clear(self) -> None:
        ...


class InMemoryCache:
    """Bounded in-memory LRU cache with optional TTL.

    Expired entries are dropped lazily when read.

    Example:
        cache = InMemoryCache(max_size=500, default_ttl_seconds=60)
        cache.set("k", [{"id": 1}])
    """

    def __init__(
        self,
        *,
        max_size: int = 1_000,
        default_ttl_seconds: int | None = None,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._entries: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl_seconds

    def _expired(self, expires_at: float | None) -> bool:
        return expires_at is not None and time.monotonic() > expires_at

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._expired(expires_at):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = (time.monotonic() + ttl) if ttl else None
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self._max_size:
            self._entries.popitem(last=False)
        self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)


def query_signature(sql: str, params: Sequence[Any] = ()) -> str:
    """Deterministic key of a rendered statement (SQL text + parameters)."""
    content = "|".join([sql, *(f"{type(p).__name__}:{p!r}" for p in params)])
    return hashlib.sha256(content.encode()).hexdigest()


def _copy_rows(rows: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    return [dict(row) for row in rows]


class QueryCache:
    """
    Per-scope result cache around an optional handle.

    A ``None`` handle makes every method a no-op. A handle missing any of
    ``get``/``set``/``clear`` raises :class:`UnsupportedCacheHandle` here,
    before any query runs.
    """

    def __init__(self, handle: Any = None, *, ttl_seconds: int | None = None):
        if handle is not None:
            missing = [m for m in REQUIRED_METHODS if not callable(getattr(handle, m, None))]
            if missing:
                raise UnsupportedCacheHandle(handle, missing)
        self._handle = handle
        self._ttl = ttl_seconds
        self.hits = 0
        self.misses = 0

    @property
    def enabled(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Any:
        return self._handle

    def lookup(self, signature: str) -> list[dict[str, Any]] | None:
        if self._handle is None:
            return None
        rows = self._handle.get(signature)
        if rows is None:
            self.misses += 1
            return None
        self.hits += 1
        logger.debug("cache_hit", signature=signature[:12], rows=len(rows))
        return _copy_rows(rows)

    def store(self, signature: str, rows: Sequence[dict[str, Any]]) -> None:
        if self._handle is None:
            return
        if self._ttl is not None:
            self._handle.set(signature, _copy_rows(rows), ttl_seconds=self._ttl)
        else:
            self._handle.set(signature, _copy_rows(rows))

    def invalidate(self) -> None:
        if self._handle is None:
            return
        self._handle.clear()
        logger.debug("cache_invalidated")

    def __repr__(self) -> str:
        return f"QueryCache(handle={type(self._handle).__name__}, hits={self.hits}, misses={self.misses})"


__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "QueryCache",
    "query_signature",
]
