"""
Table metadata sources.

The translator restricts rows to a table's columns and the CRUD engine
updates by primary key, so both need to ask the store what a table looks
like. A :class:`~crudspine.protocols.Catalog` answers two questions:
``columns(table)`` and ``primary_keys(table)``.

Implementations:
    - :class:`SQLiteCatalog` reads ``PRAGMA table_info``
    - :class:`SQLAlchemyCatalog` uses ``sqlalchemy.inspect`` on the
      session's connection, so it sees tables created inside the open
      transaction
    - :class:`CachedCatalog` memoizes any catalog per table until
      :meth:`CachedCatalog.refresh`

Tags:
    catalog, metadata, introspection, sqlite, sqlalchemy, crudspine
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import inspect
from sqlalchemy.exc import NoSuchTableError
from sqlalchemy.orm import Session

from crudspine.logging import get_logger
from crudspine.protocols import Catalog

logger = get_logger(__name__)


class SQLiteCatalog:
    """Catalog backed by ``PRAGMA table_info``."""

    def __init__(self, conn: Any):
        self._conn = conn

    def _table_info(self, table: str) -> list[Any]:
        quoted = '"' + table.replace('"', '""') + '"'
        return list(self._conn.execute(f"PRAGMA table_info({quoted})").fetchall())

    def columns(self, table: str) -> list[str]:
        return [row[1] for row in self._table_info(table)]

    def primary_keys(self, table: str) -> list[str]:
        keyed = [(row[5], row[1]) for row in self._table_info(table) if row[5]]
        return [name for _, name in sorted(keyed)]


class SQLAlchemyCatalog:
    """Catalog backed by the SQLAlchemy inspector."""

    def __init__(self, session: Session):
        self._session = session

    def _inspector(self) -> Any:
        return inspect(self._session.connection())

    def columns(self, table: str) -> list[str]:
        try:
            return [c["name"] for c in self._inspector().get_columns(table)]
        except NoSuchTableError:
            logger.warning("catalog_table_missing", table=table)
            return []

    def primary_keys(self, table: str) -> list[str]:
        try:
            constraint = self._inspector().get_pk_constraint(table)
        except NoSuchTableError:
            return []
        return list(constraint.get("constrained_columns") or [])


class CachedCatalog:
    """Memoizing wrapper around another catalog."""

    def __init__(self, inner: Catalog):
        self._inner = inner
        self._columns: dict[str, list[str]] = {}
        self._primary_keys: dict[str, list[str]] = {}

    @property
    def inner(self) -> Catalog:
        return self._inner

    def columns(self, table: str) -> list[str]:
        if table not in self._columns:
            self._columns[table] = self._inner.columns(table)
        return list(self._columns[table])

    def primary_keys(self, table: str) -> list[str]:
        if table not in self._primary_keys:
            self._primary_keys[table] = self._inner.primary_keys(table)
        return list(self._primary_keys[table])

    def refresh(self, table: str | None = None) -> None:
        """Forget cached metadata for ``table`` (or for every table)."""
        if table is None:
            self._columns.clear()
            self._primary_keys.clear()
        else:
            self._columns.pop(table, None)
            self._primary_keys.pop(table, None)


__all__ = [
    "SQLiteCatalog",
    "SQLAlchemyCatalog",
    "CachedCatalog",
]
