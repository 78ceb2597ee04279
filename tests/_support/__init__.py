"""
Test support utilities for crudspine tests.

This module provides helpers that don't fit as pytest fixtures but are
useful across multiple test files: a connection wrapper recording every
statement it runs, and an order validator over that record.
"""

from __future__ import annotations

import sqlite3
from typing import Any

import pytest


class RecordingConnection:
    """
    Connection wrapper that records each ``(sql, params)`` it executes.

    Usage:
        conn = RecordingConnection(SqliteConnection(":memory:"))
        scope = Scope(conn)
        ...
        assert conn.statements == []
    """

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self.statements: list[tuple[str, tuple[Any, ...]]] = []
        self.commits = 0
        self.rollbacks = 0

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self.statements.append((sql, tuple(params)))
        return self.inner.execute(sql, params)

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        self.statements.append((sql, tuple(params)))
        return self.inner.executemany(sql, params)

    def commit(self) -> None:
        self.commits += 1
        self.inner.commit()

    def rollback(self) -> None:
        self.rollbacks += 1
        self.inner.rollback()

    def close(self) -> None:
        self.inner.close()

    def sql_matching(self, prefix: str) -> list[str]:
        """Recorded SQL texts starting with ``prefix`` (case-insensitive)."""
        return [sql for sql, _ in self.statements if sql.upper().startswith(prefix.upper())]

    def data_statements(self) -> list[tuple[str, tuple[Any, ...]]]:
        """Recorded statements without catalog pragmas."""
        return [(sql, p) for sql, p in self.statements if not sql.startswith("PRAGMA")]

    def clear(self) -> None:
        self.statements.clear()


class StatementOrderValidator:
    """
    Validates the order in which statements reached the store.

    Usage:
        validator = StatementOrderValidator(conn.statements)
        validator.assert_before("INSERT", "DELETE")
    """

    def __init__(self, statements: list[tuple[str, tuple[Any, ...]]]) -> None:
        self.sql = [sql for sql, _ in statements]

    def indices(self, prefix: str) -> list[int]:
        return [i for i, sql in enumerate(self.sql) if sql.upper().startswith(prefix.upper())]

    def assert_before(self, first: str, second: str) -> None:
        """Assert every ``first`` statement precedes every ``second`` statement."""
        first_idx = self.indices(first)
        second_idx = self.indices(second)
        assert first_idx, f"No statement starting with {first!r}: {self.sql}"
        assert second_idx, f"No statement starting with {second!r}: {self.sql}"
        assert max(first_idx) < min(second_idx), (
            f"Expected every {first!r} before every {second!r}, order: {self.sql}"
        )


RETURNING_AVAILABLE = sqlite3.sqlite_version_info >= (3, 35, 0)

requires_returning = pytest.mark.skipif(
    not RETURNING_AVAILABLE, reason="SQLite < 3.35 has no RETURNING"
)
