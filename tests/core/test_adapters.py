"""Tests for ``crudspine.adapters``: sqlite3 adapter and SQLAlchemy bridge."""

from __future__ import annotations

import pytest

from crudspine.adapters.sqlalchemy import (
    CrudSession,
    SAConnectionBridge,
    create_crud_engine,
    crud_session_factory,
    rewrite_placeholders,
)
from crudspine.adapters.sqlite import SqliteConnection
from crudspine.protocols import Connection


class TestSqliteConnection:
    def test_execute_and_fetch(self):
        conn = SqliteConnection(":memory:")
        conn.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, status TEXT)")
        conn.execute("INSERT INTO orders (status) VALUES (?)", ("new",))
        assert conn.lastrowid == 1
        assert conn.rowcount == 1
        conn.execute("SELECT id, status FROM orders")
        assert [d[0] for d in conn.description] == ["id", "status"]
        assert conn.fetchall() == [(1, "new")]
        conn.close()

    def test_foreign_keys_enabled(self):
        conn = SqliteConnection(":memory:")
        assert conn.execute("PRAGMA foreign_keys").fetchone() == (1,)
        conn.close()

    def test_rollback(self):
        conn = SqliteConnection(":memory:")
        conn.execute("CREATE TABLE t (v TEXT)")
        conn.commit()
        conn.execute("INSERT INTO t VALUES ('x')")
        conn.rollback()
        assert conn.execute("SELECT COUNT(*) FROM t").fetchone() == (0,)
        conn.close()

    def test_satisfies_protocol(self):
        conn = SqliteConnection(":memory:")
        assert isinstance(conn, Connection)
        assert repr(conn) == "SqliteConnection(':memory:')"
        conn.close()


class TestRewritePlaceholders:
    def test_question_marks(self):
        assert rewrite_placeholders("SELECT * FROM t WHERE a = ? AND b = ?") == (
            "SELECT * FROM t WHERE a = :p0 AND b = :p1",
            2,
        )

    def test_format_markers(self):
        assert rewrite_placeholders("UPDATE t SET a = %s WHERE id = %s") == (
            "UPDATE t SET a = :p0 WHERE id = :p1",
            2,
        )

    def test_literals_untouched(self):
        assert rewrite_placeholders("SELECT '?' FROM t WHERE a = ?") == (
            "SELECT '?' FROM t WHERE a = :p0",
            1,
        )


class TestSAConnectionBridge:
    @pytest.fixture
    def bridge(self):
        engine = create_crud_engine("sqlite://")
        session = crud_session_factory(engine)()
        bridge = SAConnectionBridge(session)
        bridge.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, status TEXT)")
        yield bridge
        session.close()
        engine.dispose()

    def test_session_type(self, bridge):
        assert isinstance(bridge.session, CrudSession)
        assert bridge.session.expire_on_commit is False

    def test_execute_fetch(self, bridge):
        bridge.execute("INSERT INTO orders (status) VALUES (?)", ["new"])
        assert bridge.lastrowid == 1
        bridge.execute("SELECT id, status FROM orders WHERE status = ?", ["new"])
        assert [d[0] for d in bridge.description] == ["id", "status"]
        assert bridge.fetchall() == [(1, "new")]

    def test_fetch_without_rows(self, bridge):
        bridge.execute("INSERT INTO orders (status) VALUES (?)", ["new"])
        assert bridge.fetchone() is None
        assert bridge.fetchall() == []
        assert bridge.description is None

    def test_parameter_count_checked(self, bridge):
        with pytest.raises(ValueError, match="placeholders"):
            bridge.execute("SELECT * FROM orders WHERE id = ?", [])

    def test_executemany(self, bridge):
        bridge.executemany("INSERT INTO orders (status) VALUES (?)", [["a"], ["b"]])
        bridge.execute("SELECT COUNT(*) FROM orders")
        assert bridge.fetchone() == (2,)

    def test_foreign_keys_pragma(self, bridge):
        bridge.execute("PRAGMA foreign_keys")
        assert bridge.fetchone() == (1,)
