"""SQLite connection adapter.

Wraps a :class:`sqlite3.Connection` to satisfy the
:class:`~crudspine.protocols.Connection` protocol.

A bare ``sqlite3.Connection`` exposes ``execute()`` (returns a cursor)
but not ``fetchone()`` / ``fetchall()`` at the connection level. This
adapter keeps one cursor so ``execute`` / ``fetchone`` / ``fetchall``
operate on the same result set.

Usage::

    from crudspine.adapters.sqlite import SqliteConnection

    conn = SqliteConnection(":memory:")
    conn.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, status TEXT)")
    conn.execute("INSERT INTO orders (status) VALUES (?)", ("new",))
    conn.lastrowid                  # 1
    conn.commit()
    conn.close()
"""

from __future__ import annotations

import sqlite3
from typing import Any


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → ``Connection`` protocol."""

    def __init__(
        self,
        path: str = ":memory:",
        *,
        foreign_keys: bool = True,
        connection: sqlite3.Connection | None = None,
    ) -> None:
        self._conn = connection or sqlite3.connect(path, check_same_thread=False)
        self._path = path
        if foreign_keys:
            self._conn.execute("PRAGMA foreign_keys = ON")
        self._cursor = self._conn.cursor()

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        self._cursor.execute(sql, tuple(params))
        return self._cursor

    def executemany(self, sql: str, params: list[tuple]) -> sqlite3.Cursor:
        self._cursor.executemany(sql, params)
        return self._cursor

    def fetchone(self) -> Any:
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    # -- cursor state ------------------------------------------------------

    @property
    def description(self) -> Any:
        return self._cursor.description

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    @property
    def lastrowid(self) -> int | None:
        return self._cursor.lastrowid

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    def __repr__(self) -> str:
        return f"SqliteConnection({self._path!r})"


__all__ = ["SqliteConnection"]
