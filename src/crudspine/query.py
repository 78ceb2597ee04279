"""
Structured statement descriptions and their SQL rendering.

The CRUD engine never concatenates SQL itself. It builds one of the
immutable statements below and hands it to the executor, which calls
:func:`render` with the scope's dialect.

Examples:
    >>> from crudspine.dialect import SQLiteDialect
    >>> from crudspine.predicate import generate_where
    >>> render(Select("orders", where=generate_where({"id": 1})), SQLiteDialect())
    ('SELECT * FROM "orders" WHERE "id" = ?', (1,))
    >>> render(Delete("orders", generate_where({"status": "void"})), SQLiteDialect())
    ('DELETE FROM "orders" WHERE "status" = ?', ('void',))
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from crudspine.dialect import Dialect
from crudspine.predicate import (
    Predicate,
    quote_field,
    render_predicate,
    substitute_markers,
)

OrderTerm = Union[str, tuple[str, str]]


@dataclass(frozen=True)
class Select:
    """``SELECT columns FROM table [WHERE ...]``, optionally a compound."""

    table: str
    columns: tuple[str, ...] = ("*",)
    where: Predicate | None = None
    union: tuple[Predicate, ...] = ()
    intersect: tuple[Predicate, ...] = ()
    order_by: tuple[OrderTerm, ...] = ()
    limit: int | None = None

    @property
    def has_condition(self) -> bool:
        return self.where is not None or bool(self.union) or bool(self.intersect)


@dataclass(frozen=True)
class Insert:
    """Multi-row ``INSERT``. Every row must carry the same columns."""

    table: str
    rows: tuple[Mapping[str, Any], ...]
    returning: tuple[str, ...] = ()

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self.rows[0]) if self.rows else ()

    @property
    def uniform(self) -> bool:
        """True when every row has exactly the columns of the first one."""
        first = list(self.columns)
        return all(list(row) == first for row in self.rows)


@dataclass(frozen=True)
class Update:
    table: str
    values: Mapping[str, Any]
    where: Predicate | None
    returning: tuple[str, ...] = ()


@dataclass(frozen=True)
class Delete:
    table: str
    where: Predicate | None


@dataclass(frozen=True)
class RawQuery:
    """Hand-written SQL using ``?`` markers for parameters."""

    sql: str
    params: tuple[Any, ...] = field(default_factory=tuple)


Statement = Union[Select, Insert, Update, Delete, RawQuery]


# =============================================================================
# RENDERING
# =============================================================================


def _columns(columns: Sequence[str], dialect: Dialect) -> str:
    return ", ".join(quote_field(c, dialect) if c != "*" else "*" for c in columns)


def _order_by(terms: Sequence[OrderTerm], dialect: Dialect) -> str:
    rendered = []
    for term in terms:
        if isinstance(term, str):
            if term.startswith("-"):
                rendered.append(f"{quote_field(term[1:], dialect)} DESC")
            else:
                rendered.append(quote_field(term, dialect))
        else:
            name, direction = term
            direction = direction.upper()
            if direction not in ("ASC", "DESC"):
                raise ValueError(f"Invalid sort direction: {direction!r}")
            rendered.append(f"{quote_field(name, dialect)} {direction}")
    return ", ".join(rendered)


def _returning(columns: Sequence[str], dialect: Dialect) -> str:
    return f" RETURNING {_columns(columns, dialect)}" if columns else ""


def _select(stmt: Select, dialect: Dialect, params: list[Any]) -> str:
    head = f"SELECT {_columns(stmt.columns, dialect)} FROM {dialect.quote(stmt.table)}"

    if stmt.union and stmt.intersect:
        raise ValueError("A select cannot be both a union and an intersection")

    branches = stmt.union or stmt.intersect
    if branches:
        keyword = " UNION " if stmt.union else " INTERSECT "
        conditions = ([stmt.where] if stmt.where is not None else []) + list(branches)
        sql = keyword.join(
            f"{head} WHERE {render_predicate(c, dialect, params)}" for c in conditions
        )
    elif stmt.where is not None:
        sql = f"{head} WHERE {render_predicate(stmt.where, dialect, params)}"
    else:
        sql = head

    if stmt.order_by:
        sql += f" ORDER BY {_order_by(stmt.order_by, dialect)}"
    if stmt.limit is not None:
        sql += f" LIMIT {int(stmt.limit)}"
    return sql


def _insert(stmt: Insert, dialect: Dialect, params: list[Any]) -> str:
    table = dialect.quote(stmt.table)
    columns = stmt.columns
    if not stmt.rows:
        raise ValueError("Insert requires at least one row")
    if not columns:
        if len(stmt.rows) > 1:
            raise ValueError("A multi-row insert needs at least one column")
        return f"INSERT INTO {table} DEFAULT VALUES{_returning(stmt.returning, dialect)}"
    if not stmt.uniform:
        raise ValueError("Every row of a multi-row insert must have the same columns")

    groups = []
    for row in stmt.rows:
        marks = []
        for column in columns:
            params.append(row[column])
            marks.append(dialect.placeholder(len(params) - 1))
        groups.append(f"({', '.join(marks)})")
    return (
        f"INSERT INTO {table} ({_columns(columns, dialect)}) "
        f"VALUES {', '.join(groups)}{_returning(stmt.returning, dialect)}"
    )


def _update(stmt: Update, dialect: Dialect, params: list[Any]) -> str:
    if not stmt.values:
        raise ValueError("Update requires at least one column to set")
    assignments = []
    for column, value in stmt.values.items():
        params.append(value)
        assignments.append(f"{quote_field(column, dialect)} = {dialect.placeholder(len(params) - 1)}")
    sql = f"UPDATE {dialect.quote(stmt.table)} SET {', '.join(assignments)}"
    if stmt.where is not None:
        sql += f" WHERE {render_predicate(stmt.where, dialect, params)}"
    return sql + _returning(stmt.returning, dialect)


def _delete(stmt: Delete, dialect: Dialect, params: list[Any]) -> str:
    sql = f"DELETE FROM {dialect.quote(stmt.table)}"
    if stmt.where is not None:
        sql += f" WHERE {render_predicate(stmt.where, dialect, params)}"
    return sql


def render(statement: Statement, dialect: Dialect) -> tuple[str, tuple[Any, ...]]:
    """Render a statement to ``(sql, params)`` for ``dialect``."""
    params: list[Any] = []
    if isinstance(statement, Select):
        sql = _select(statement, dialect, params)
    elif isinstance(statement, Insert):
        sql = _insert(statement, dialect, params)
    elif isinstance(statement, Update):
        sql = _update(statement, dialect, params)
    elif isinstance(statement, Delete):
        sql = _delete(statement, dialect, params)
    elif isinstance(statement, RawQuery):
        sql = substitute_markers(statement.sql, dialect, 0)
        params.extend(statement.params)
    else:
        raise TypeError(f"Not a statement: {statement!r}")
    return sql, tuple(params)


__all__ = [
    "Select",
    "Insert",
    "Update",
    "Delete",
    "RawQuery",
    "Statement",
    "OrderTerm",
    "render",
]
