"""
Relational executor: runs structured statements over a ``Connection``.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                          SqlExecutor                               │
    │                                                                    │
    │   conn: Connection        ← crudspine.protocols                    │
    │   dialect: Dialect        ← crudspine.dialect                      │
    │   cache: QueryCache       ← crudspine.cache (per scope)            │
    │                                                                    │
    │   rows(Select)            → list[dict]   (cached)                  │
    │   rows(Update/Insert with RETURNING) → list[dict]                  │
    │   execute(Update/Delete)  → affected row count                     │
    │   insert(Insert)          → one result item per row, carrying the  │
    │                             generated key                          │
    │   raw(sql, params)        → list[dict]   (never cached)            │
    └────────────────────────────────────────────────────────────────────┘

Every mutating statement clears the cache before it reaches the
connection. Driver failures are logged with the rendered SQL and raised
as :class:`~crudspine.errors.StoreError` with the driver exception chained.

Tags:
    executor, sql, repository, database, crudspine
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from crudspine.cache import QueryCache, query_signature
from crudspine.dialect import Dialect, SQLiteDialect
from crudspine.errors import ErrorContext, StoreError
from crudspine.logging import get_logger
from crudspine.protocols import Connection
from crudspine.query import Delete, Insert, RawQuery, Select, Statement, Update, render

logger = get_logger(__name__)

GENERATED_KEY = "generated_key"

# Result names under which drivers report a store-generated key.
GENERATED_KEY_FIELDS = (GENERATED_KEY, "last_insert_rowid()", "scope_identity()")


def generated_key(result_item: Any) -> Any:
    """The store-generated key of an insert result item, if any."""
    if not isinstance(result_item, Mapping):
        return None
    for name in GENERATED_KEY_FIELDS:
        if result_item.get(name) is not None:
            return result_item[name]
    return None


def _operation(statement: Statement) -> str:
    return {
        Select: "select",
        Insert: "insert",
        Update: "update",
        Delete: "delete",
        RawQuery: "query",
    }.get(type(statement), "statement")


def _table(statement: Statement) -> str | None:
    return getattr(statement, "table", None)


def _mutates(statement: Statement) -> bool:
    return isinstance(statement, (Insert, Update, Delete))


class SqlExecutor:
    """Executor rendering statements through a dialect onto a connection.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect; defaults to :class:`SQLiteDialect`.
        cache: Per-scope :class:`QueryCache`; defaults to a no-op cache.
        echo: Log every statement at DEBUG level.
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        *,
        cache: QueryCache | None = None,
        echo: bool = False,
    ) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.cache = cache or QueryCache(None)
        self.echo = echo

    # -- low level ---------------------------------------------------------

    def _run(self, sql: str, params: tuple[Any, ...], statement: Statement) -> Any:
        if self.echo:
            logger.debug("sql", sql=sql, params=params)
        try:
            return self.conn.execute(sql, params)
        except Exception as e:
            raise self._store_error(e, sql, params, statement) from e

    def _store_error(
        self, error: Exception, sql: str, params: tuple[Any, ...], statement: Statement
    ) -> StoreError:
        context = ErrorContext(
            table=_table(statement),
            operation=_operation(statement),
            sql=sql,
            params=params,
        )
        logger.error(
            "store_error",
            error=str(error),
            error_type=type(error).__name__,
            **context.to_dict(),
        )
        return StoreError(
            f"{context.operation} failed on {context.table or 'store'}: {error}",
            context=context,
            cause=error,
        )

    def _fetch_dicts(self, cursor: Any, sql: str, params: tuple[Any, ...], statement: Statement) -> list[dict[str, Any]]:
        try:
            rows = cursor.fetchall()
            description = getattr(cursor, "description", None)
        except Exception as e:
            raise self._store_error(e, sql, params, statement) from e
        if not rows:
            return []
        if description:
            columns = [desc[0] for desc in description]
            return [dict(zip(columns, row)) for row in rows]
        return [dict(row) for row in rows]

    # -- Executor protocol -------------------------------------------------

    def render(self, statement: Statement) -> tuple[str, tuple[Any, ...]]:
        return render(statement, self.dialect)

    def rows(self, statement: Statement) -> list[dict[str, Any]]:
        """Rows of a ``Select`` (cached) or of a statement with ``RETURNING``."""
        sql, params = self.render(statement)
        cacheable = isinstance(statement, Select)

        if cacheable:
            signature = query_signature(sql, params)
            cached = self.cache.lookup(signature)
            if cached is not None:
                return cached
        if _mutates(statement):
            self.cache.invalidate()

        cursor = self._run(sql, params, statement)
        result = self._fetch_dicts(cursor, sql, params, statement)
        logger.debug(
            "rows_fetched",
            operation=_operation(statement),
            table=_table(statement),
            rows=len(result),
        )
        if cacheable:
            self.cache.store(signature, result)
        return result

    def execute(self, statement: Statement) -> int:
        """Run a statement and return the affected row count."""
        sql, params = self.render(statement)
        if _mutates(statement):
            self.cache.invalidate()
        cursor = self._run(sql, params, statement)
        count = getattr(cursor, "rowcount", -1)
        logger.debug(
            "statement_executed",
            operation=_operation(statement),
            table=_table(statement),
            affected=count,
        )
        return count

    def insert(self, statement: Insert) -> list[dict[str, Any]]:
        """
        Insert rows and report their keys.

        With ``RETURNING`` columns and uniform rows, one multi-row statement
        runs and the returned rows are the result. Otherwise each row is
        inserted on its own and reported as ``{"generated_key": lastrowid}``.
        """
        if not statement.rows:
            return []
        if statement.returning and (len(statement.rows) == 1 or (statement.uniform and statement.columns)):
            return self.rows(statement)

        self.cache.invalidate()
        results: list[dict[str, Any]] = []
        for row in statement.rows:
            single = Insert(statement.table, (row,), statement.returning)
            if statement.returning:
                results.extend(self.rows(single))
                continue
            sql, params = self.render(single)
            cursor = self._run(sql, params, single)
            results.append({GENERATED_KEY: getattr(cursor, "lastrowid", None)})
        logger.debug("rows_inserted", table=statement.table, rows=len(results))
        return results

    def raw(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        """Run hand-written SQL (``?`` markers) and return its rows."""
        return self._raw_rows(RawQuery(sql, tuple(params)))

    def _raw_rows(self, statement: RawQuery) -> list[dict[str, Any]]:
        sql, params = self.render(statement)
        # Raw SQL may write; treat it as one.
        self.cache.invalidate()
        cursor = self._run(sql, params, statement)
        return self._fetch_dicts(cursor, sql, params, statement)


__all__ = [
    "GENERATED_KEY",
    "GENERATED_KEY_FIELDS",
    "generated_key",
    "SqlExecutor",
]
