"""
Canonical protocol definitions for crudspine.

Every collaborator the engine talks to is described here as a structural
protocol: the database connection, the table catalog, the relational
executor, and the capability set of persistable records. Modules import
these contracts from here and never from a concrete adapter.

Architecture:
    ::

        protocols.py
        ├── Connection  : sync DB-API-like connection (sqlite3, SA bridge)
        ├── Catalog     : table columns + primary-key columns
        ├── Executor    : runs structured statements, returns rows/counts
        ├── Identified  : primary_key() / identity()
        └── Storable    : store()

Guardrails:
    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts; implementations live in adapters,
       catalog.py and executor.py

Tags:
    protocol, connection, catalog, executor, entity, crudspine
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from crudspine.query import Statement


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNCHRONOUS connection interface.

    ``execute`` returns a cursor-like object exposing ``fetchall()``,
    ``description``, ``rowcount`` and ``lastrowid``.

    Implementations:
        - :class:`crudspine.adapters.sqlite.SqliteConnection`
        - :class:`crudspine.adapters.sqlalchemy.SAConnectionBridge`
        - a raw ``sqlite3.Connection``
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters. SYNC."""
        ...

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        """Execute SQL statement for multiple parameter sets. SYNC."""
        ...

    def commit(self) -> None:
        """Commit current transaction. SYNC."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction. SYNC."""
        ...


@runtime_checkable
class Catalog(Protocol):
    """Metadata source: reports a table's columns and primary-key columns."""

    def columns(self, table: str) -> list[str]:
        """Column names of ``table`` in declaration order."""
        ...

    def primary_keys(self, table: str) -> list[str]:
        """Primary-key column names of ``table`` (empty when none)."""
        ...


@runtime_checkable
class Executor(Protocol):
    """
    Relational executor: accepts a structured statement and runs it.

    ``rows`` returns the result set of a ``Select`` (or of a statement with
    ``RETURNING``); ``execute`` returns the affected-row count; ``insert``
    returns one result item per inserted row carrying the store-generated key
    under ``generated_key``.
    """

    def rows(self, statement: Statement) -> list[dict[str, Any]]:
        ...

    def execute(self, statement: Statement) -> int:
        ...

    def insert(self, statement: Statement) -> list[dict[str, Any]]:
        ...


@runtime_checkable
class Identified(Protocol):
    """A record with a primary key and an identity value."""

    @classmethod
    def primary_key(cls) -> str | tuple[str, ...]:
        ...

    def identity(self) -> Any:
        ...


@runtime_checkable
class Storable(Protocol):
    """A record that knows the table it is stored in."""

    @classmethod
    def store(cls) -> str:
        ...


__all__ = [
    "Connection",
    "Catalog",
    "Executor",
    "Identified",
    "Storable",
]
