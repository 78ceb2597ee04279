"""
Scope: the handle every CRUD call receives.

A :class:`Scope` bundles what one caller needs to talk to the store:
the connection, its dialect, a table catalog, the per-scope query cache
and the executor that ties them together. It also owns transaction
state.

Transactions:
    ``transaction()`` is a context manager with a level counter. The
    outermost level begins the unit of work and decides its fate; nested
    levels are absorbed into it. An exception at any level marks the unit
    for rollback; ``set_rollback_only()`` does the same without raising.
    Rolling back clears the query cache.

    ``manual_transaction()`` hands control to the caller (``commit()``,
    ``rollback()``, ``close()``). It refuses to start while any
    transaction is open, and automatic transactions refuse to start while
    a manual one is open.

    CRUD writes run inside ``unit_of_work()``: a nested automatic
    transaction, or a pass-through while a manual transaction is active.

Examples:
    >>> scope = Scope(SqliteConnection(":memory:"))
    >>> with scope.transaction():
    ...     crud.save(scope, Order(status="new"))
    ...     with scope.transaction():          # absorbed
    ...         crud.save(scope, Order(status="paid"))
    >>> tx = scope.manual_transaction()
    >>> crud.save(scope, Order(status="draft"))
    >>> tx.rollback(); tx.close()

Tags:
    scope, transaction, unit-of-work, connection, crudspine
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from crudspine.cache import QueryCache
from crudspine.catalog import CachedCatalog, SQLAlchemyCatalog, SQLiteCatalog
from crudspine.dialect import Dialect, SQLiteDialect, get_dialect
from crudspine.errors import ErrorContext, StoreError, TransactionError
from crudspine.executor import SqlExecutor
from crudspine.logging import get_logger
from crudspine.protocols import Catalog, Connection

logger = get_logger(__name__)


class ManualTransaction:
    """Caller-driven transaction on a scope."""

    def __init__(self, scope: Scope):
        self._scope = scope
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise TransactionError("Manual transaction is closed")

    def commit(self) -> None:
        self._check_open()
        self._scope._commit()

    def rollback(self) -> None:
        self._check_open()
        self._scope._rollback()

    def close(self) -> None:
        """Roll back uncommitted work and release the scope."""
        if self._closed:
            return
        try:
            self._scope._rollback()
        finally:
            self._closed = True
            self._scope._manual = None
            logger.debug("manual_transaction_closed")

    def __enter__(self) -> ManualTransaction:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class Scope:
    """Connection, dialect, catalog, cache and transaction state for one caller.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect, defaults to :class:`SQLiteDialect`.
        catalog: Table metadata source, defaults to a memoized
            :class:`SQLiteCatalog` over ``conn``.
        cache: Cache handle (``None`` disables caching) or a prepared
            :class:`QueryCache`.
        echo: Log every rendered statement.
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        catalog: Catalog | None = None,
        cache: Any = None,
        *,
        echo: bool = False,
    ) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.catalog: Catalog = catalog or CachedCatalog(SQLiteCatalog(conn))
        self.cache: QueryCache = cache if isinstance(cache, QueryCache) else QueryCache(cache)
        self.executor = SqlExecutor(conn, self.dialect, cache=self.cache, echo=echo)

        self._level = 0
        self._rollback_only = False
        self._manual: ManualTransaction | None = None

    @classmethod
    def from_session(
        cls,
        session: Any,
        dialect: Dialect | None = None,
        cache: Any = None,
        *,
        echo: bool = False,
    ) -> Scope:
        """Create a scope backed by a SQLAlchemy ORM session.

        The dialect is derived from the session's bind unless given.
        """
        from crudspine.adapters.sqlalchemy import SAConnectionBridge

        if dialect is None:
            dialect = get_dialect(session.get_bind().dialect.name)
        return cls(
            SAConnectionBridge(session),
            dialect=dialect,
            catalog=CachedCatalog(SQLAlchemyCatalog(session)),
            cache=cache,
            echo=echo,
        )

    # -- transaction state -------------------------------------------------

    @property
    def level(self) -> int:
        """Depth of nested automatic transactions (0 when none is open)."""
        return self._level

    @property
    def in_transaction(self) -> bool:
        return self._level > 0 or self._manual is not None

    @property
    def rollback_only(self) -> bool:
        return self._rollback_only

    def set_rollback_only(self) -> None:
        """Mark the current unit of work to be rolled back at its end."""
        if self._level == 0:
            raise TransactionError("No automatic transaction is open")
        self._rollback_only = True

    def _commit(self) -> None:
        try:
            self.conn.commit()
        except Exception as e:
            logger.error("commit_failed", error=str(e))
            raise StoreError(
                f"commit failed: {e}", context=ErrorContext(operation="commit"), cause=e
            ) from e

    def _rollback(self) -> None:
        self.cache.invalidate()
        try:
            self.conn.rollback()
        except Exception as e:
            logger.error("rollback_failed", error=str(e))
            raise StoreError(
                f"rollback failed: {e}", context=ErrorContext(operation="rollback"), cause=e
            ) from e

    def _commit_or_rollback(self) -> None:
        """Commit; on failure roll back, then re-raise the commit error."""
        try:
            self._commit()
        except StoreError:
            self._rollback_only = False
            try:
                self._rollback()
            except StoreError:
                logger.warning("rollback_after_commit_failed")
            else:
                logger.debug("transaction_rolled_back", reason="commit_failed")
            raise

    @contextmanager
    def transaction(self) -> Iterator[Scope]:
        """Automatic (nestable) transaction."""
        if self._manual is not None:
            raise TransactionError(
                "Cannot start an automatic transaction while a manual one is open"
            )

        outermost = self._level == 0
        if outermost:
            self._rollback_only = False
        self._level += 1
        try:
            yield self
        except BaseException:
            self._rollback_only = True
            if outermost:
                self._level = 0
                self._rollback()
                logger.debug("transaction_rolled_back", reason="exception")
            else:
                self._level -= 1
            raise
        else:
            self._level -= 1
            if outermost:
                if self._rollback_only:
                    self._rollback()
                    logger.debug("transaction_rolled_back", reason="rollback_only")
                else:
                    self._commit_or_rollback()
                self._rollback_only = False

    def manual_transaction(self) -> ManualTransaction:
        """Start a caller-driven transaction."""
        if self.in_transaction:
            raise TransactionError(
                "Cannot start a manual transaction while another transaction is open"
            )
        self._manual = ManualTransaction(self)
        logger.debug("manual_transaction_started")
        return self._manual

    @contextmanager
    def unit_of_work(self) -> Iterator[Scope]:
        """Transaction for one CRUD write (pass-through under manual control)."""
        if self._manual is not None:
            yield self
            return
        with self.transaction():
            yield self

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        if self._manual is not None:
            self._manual.close()
        close = getattr(self.conn, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> Scope:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Scope(dialect={self.dialect.name}, level={self._level}, cache={self.cache!r})"


__all__ = [
    "Scope",
    "ManualTransaction",
]
