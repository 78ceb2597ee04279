"""SQL dialect abstraction for the statement renderer.

Provides a ``Dialect`` protocol and the two shipped implementations.
:mod:`crudspine.query` asks the dialect for placeholders, identifier
quoting and ``RETURNING`` support while rendering a structured statement;
nothing else in the engine knows which database it talks to.

Manifesto:
    The CRUD engine must run unchanged on an in-memory SQLite database in
    tests and on PostgreSQL in production. Without a dialect layer the
    renderer would be littered with backend checks.

    - **One interface:** Dialect protocol for all SQL fragments
    - **Zero coupling:** the engine never imports a database driver
    - **Capability flags:** ``supports_returning`` decides how updates and
      batch inserts report their rows

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │  query.render(Select(...), dialect) → (sql, params)              │
    └──────────────────────────────────────────────────────────────────┘
                              │
                  ┌───────────┴────────────┐
                  ▼                        ▼
            ┌──────────┐           ┌──────────────┐
            │ SQLite   │           │ PostgreSQL   │
            │ ?, ?, ?  │           │ %s, %s, %s   │
            │ "col"    │           │ "col"        │
            └──────────┘           └──────────────┘

Examples:
    >>> d = SQLiteDialect()
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.quote("order")
    '"order"'

Guardrails:
    ❌ DON'T: Format values into SQL text
    ✅ DO: Use ``placeholder()`` and pass values as bound parameters

Tags:
    dialect, sql, abstraction, portability, database, crudspine
"""

from __future__ import annotations

import sqlite3
from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract used by the renderer."""

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    @property
    def supports_returning(self) -> bool:
        """Whether ``INSERT``/``UPDATE`` accept a ``RETURNING`` clause."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    def quote(self, identifier: str) -> str:
        """Quote a table or column name."""
        ...

    def boolean_true(self) -> str:
        """Literal SQL expression that is always true."""
        ...


def _quote_identifier(identifier: str) -> str:
    if identifier == "*":
        return identifier
    return '"' + identifier.replace('"', '""') + '"'


class SQLiteDialect:
    """SQLite dialect: ``?`` placeholders.

    ``RETURNING`` is available from SQLite 3.35; the flag is detected from
    the linked library unless given explicitly.
    """

    def __init__(self, *, returning: bool | None = None) -> None:
        if returning is None:
            returning = sqlite3.sqlite_version_info >= (3, 35, 0)
        self._returning = returning

    @property
    def name(self) -> str:
        return "sqlite"

    @property
    def supports_returning(self) -> bool:
        return self._returning

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def quote(self, identifier: str) -> str:
        return _quote_identifier(identifier)

    def boolean_true(self) -> str:
        return "1"

    def __repr__(self) -> str:
        return f"SQLiteDialect(returning={self._returning})"


class PostgreSQLDialect:
    """PostgreSQL dialect: ``%s`` placeholders (psycopg style).

    The SQLAlchemy bridge rewrites ``%s`` into named parameters before
    handing the statement to the session.
    """

    @property
    def name(self) -> str:
        return "postgresql"

    @property
    def supports_returning(self) -> bool:
        return True

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def quote(self, identifier: str) -> str:
        return _quote_identifier(identifier)

    def boolean_true(self) -> str:
        return "TRUE"

    def __repr__(self) -> str:
        return "PostgreSQLDialect()"


# =========================================================================
# Registry / factory
# =========================================================================

_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Args:
        db_type: One of ``'sqlite'``, ``'postgresql'``, ``'postgres'``.

    Raises:
        ValueError: If ``db_type`` is not recognised.

    Example:
        >>> get_dialect("postgresql").placeholders(2)
        '%s, %s'
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (e.g. a test double)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "get_dialect",
    "register_dialect",
]
