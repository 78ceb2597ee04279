"""SQLAlchemy engine factory and Connection bridge.

Manifesto:
    The CRUD engine speaks the small ``Connection`` protocol. Applications
    that already hold a SQLAlchemy ``Session`` should be able to hand it
    over and have CRUD writes share the session's transaction.
    ``SAConnectionBridge`` wraps a ``Session`` to satisfy the protocol.

This module provides:

* ``create_crud_engine``   -- Create a SA engine from a URL.
* ``CrudSession``          -- A pre-configured ``Session`` subclass.
* ``crud_session_factory`` -- ``sessionmaker`` producing ``CrudSession``.
* ``SAConnectionBridge``   -- ``Session`` → ``Connection`` protocol, with
  positional ``?`` / ``%s`` placeholders rewritten to named parameters.

Tags:
    sqlalchemy, session, engine, bridge, connection, crudspine
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def create_crud_engine(url: str, *, echo: bool = False, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine.

    For SQLite URLs foreign keys are switched on for every new DB-API
    connection.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return _sa_create_engine(url, echo=echo, **kwargs)


class CrudSession(Session):
    """Session with ``expire_on_commit=False``."""

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def crud_session_factory(engine: Engine) -> sessionmaker[CrudSession]:
    """Return a ``sessionmaker`` bound to *engine* producing ``CrudSession``."""
    return sessionmaker(bind=engine, class_=CrudSession)


def rewrite_placeholders(sql: str) -> tuple[str, int]:
    """Rewrite ``?`` and ``%s`` markers into ``:p0``, ``:p1`` ...

    Markers inside single-quoted literals are left alone. Returns the
    rewritten SQL and the number of markers found.
    """
    out: list[str] = []
    index = 0
    in_literal = False
    i = 0
    while i < len(sql):
        ch = sql[i]
        if ch == "'":
            in_literal = not in_literal
            out.append(ch)
        elif not in_literal and ch == "?":
            out.append(f":p{index}")
            index += 1
        elif not in_literal and sql.startswith("%s", i):
            out.append(f":p{index}")
            index += 1
            i += 1
        else:
            out.append(ch)
        i += 1
    return "".join(out), index


class SAConnectionBridge:
    """Adapter that makes a SQLAlchemy ``Session`` look like a ``Connection``.

    Implements ``execute``, ``executemany``, ``fetchone``, ``fetchall``,
    ``commit``, ``rollback`` and the cursor attributes the executor reads
    (``description``, ``rowcount``, ``lastrowid``).
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._last_result: Any = None

    # --- execute / executemany ---

    def execute(self, sql: str, parameters: Sequence[Any] | None = None) -> SAConnectionBridge:
        rewritten, count = rewrite_placeholders(sql)
        params = list(parameters or ())
        if count != len(params):
            raise ValueError(
                f"Statement has {count} placeholders but {len(params)} parameters were given"
            )
        mapping = {f"p{i}": v for i, v in enumerate(params)}
        self._last_result = self._session.execute(text(rewritten), mapping)
        return self

    def executemany(self, sql: str, seq_of_parameters: Sequence[Sequence[Any]]) -> SAConnectionBridge:
        for params in seq_of_parameters:
            self.execute(sql, params)
        return self

    # --- fetch ---

    def _returns_rows(self) -> bool:
        return self._last_result is not None and self._last_result.returns_rows

    def fetchone(self) -> tuple[Any, ...] | None:
        if not self._returns_rows():
            return None
        row = self._last_result.fetchone()
        return tuple(row) if row is not None else None

    def fetchall(self) -> list[tuple[Any, ...]]:
        if not self._returns_rows():
            return []
        return [tuple(r) for r in self._last_result.fetchall()]

    # --- transaction ---

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()

    # --- cursor state ---

    @property
    def description(self) -> list[tuple[Any, ...]] | None:
        """DB-API 2.0 compatible description of the last result (names only)."""
        if not self._returns_rows():
            return None
        keys = list(self._last_result.keys())
        return [(k, None, None, None, None, None, None) for k in keys]

    @property
    def rowcount(self) -> int:
        if self._last_result is None:
            return -1
        return self._last_result.rowcount

    @property
    def lastrowid(self) -> Any:
        if self._last_result is None:
            return None
        return getattr(self._last_result, "lastrowid", None)

    @property
    def session(self) -> Session:
        """Access the underlying SA session (e.g., for ORM queries)."""
        return self._session


__all__ = [
    "create_crud_engine",
    "CrudSession",
    "crud_session_factory",
    "rewrite_placeholders",
    "SAConnectionBridge",
]
