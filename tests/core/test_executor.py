"""Tests for ``crudspine.executor``: statement execution over a connection."""

from __future__ import annotations

import sqlite3

import pytest
from structlog.testing import capture_logs

from crudspine.cache import InMemoryCache, QueryCache
from crudspine.dialect import SQLiteDialect
from crudspine.errors import ErrorCategory, StoreError
from crudspine.executor import GENERATED_KEY, SqlExecutor, generated_key
from crudspine.predicate import Comparison, In
from crudspine.query import Delete, Insert, Select, Update

from _support import requires_returning


@pytest.fixture
def executor(conn):
    return SqlExecutor(conn, SQLiteDialect(returning=False), cache=QueryCache(InMemoryCache()))


def _seed(conn, *statuses):
    for status in statuses:
        conn.execute("INSERT INTO orders (customer_id, status) VALUES (?, ?)", (1, status))


class TestGeneratedKey:
    def test_known_names(self):
        assert generated_key({GENERATED_KEY: 5}) == 5
        assert generated_key({"last_insert_rowid()": 6}) == 6
        assert generated_key({"id": 7}) is None
        assert generated_key(None) is None


class TestRows:
    def test_select_returns_dicts(self, executor, conn):
        _seed(conn, "new", "paid")
        rows = executor.rows(Select("orders", where=Comparison("=", "status", "paid")))
        assert rows == [{"id": 2, "customer_id": 1, "status": "paid"}]

    def test_empty_result(self, executor):
        assert executor.rows(Select("orders", where=In("id", [1]))) == []

    def test_selects_are_cached(self, executor, conn):
        _seed(conn, "new")
        stmt = Select("orders", where=In("id", [1]))
        executor.rows(stmt)
        conn.execute("UPDATE orders SET status = 'changed behind the cache'")
        assert executor.rows(stmt)[0]["status"] == "new"
        assert executor.cache.hits == 1

    def test_mutation_invalidates_cache(self, executor, conn):
        _seed(conn, "new")
        stmt = Select("orders", where=In("id", [1]))
        executor.rows(stmt)
        executor.execute(Update("orders", {"status": "paid"}, In("id", [1])))
        assert executor.rows(stmt)[0]["status"] == "paid"


class TestExecute:
    def test_rowcount(self, executor, conn):
        _seed(conn, "new", "new", "paid")
        assert executor.execute(Update("orders", {"status": "void"}, Comparison("=", "status", "new"))) == 2
        assert executor.execute(Delete("orders", Comparison("=", "status", "void"))) == 2

    def test_store_error_wraps_driver_error(self, executor):
        with capture_logs() as logs:
            with pytest.raises(StoreError) as exc_info:
                executor.execute(Delete("no_such_table", In("id", [1])))
        error = exc_info.value
        assert error.category == ErrorCategory.STORE
        assert isinstance(error.cause, sqlite3.OperationalError)
        assert error.__cause__ is error.cause
        assert error.context.table == "no_such_table"
        assert error.context.operation == "delete"
        assert error.context.sql == 'DELETE FROM "no_such_table" WHERE "id" IN (?)'
        assert error.context.params == (1,)
        errors = [log for log in logs if log["event"] == "store_error"]
        assert len(errors) == 1
        assert errors[0]["log_level"] == "error"
        assert errors[0]["table"] == "no_such_table"


class TestInsert:
    def test_per_row_generated_keys(self, executor):
        results = executor.insert(Insert("orders", ({"status": "a"}, {"status": "b"})))
        assert results == [{GENERATED_KEY: 1}, {GENERATED_KEY: 2}]

    def test_non_uniform_rows(self, executor):
        results = executor.insert(Insert("orders", ({"status": "a"}, {"customer_id": 3})))
        assert [r[GENERATED_KEY] for r in results] == [1, 2]

    def test_insert_invalidates_cache(self, executor):
        stmt = Select("orders", where=In("id", [1]))
        assert executor.rows(stmt) == []
        executor.insert(Insert("orders", ({"status": "a"},)))
        assert len(executor.rows(stmt)) == 1

    def test_empty(self, executor):
        assert executor.insert(Insert("orders", ())) == []

    @requires_returning
    def test_returning(self, conn):
        executor = SqlExecutor(conn, SQLiteDialect(returning=True))
        results = executor.insert(
            Insert("orders", ({"status": "a"}, {"status": "b"}), returning=("id", "status"))
        )
        assert results == [{"id": 1, "status": "a"}, {"id": 2, "status": "b"}]


class TestRaw:
    def test_raw_rows(self, executor, conn):
        _seed(conn, "new", "paid")
        rows = executor.raw("SELECT status FROM orders WHERE id > ? ORDER BY id", (0,))
        assert rows == [{"status": "new"}, {"status": "paid"}]

    def test_raw_not_cached(self, executor, conn):
        _seed(conn, "new")
        executor.raw("SELECT * FROM orders")
        assert executor.cache.hits == 0
        assert executor.cache.handle.size() == 0
