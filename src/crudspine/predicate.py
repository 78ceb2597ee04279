"""
Predicate trees and the write guard.

A predicate is a small immutable tree (:class:`Comparison`, :class:`In`,
:class:`And`, :class:`Or`, :class:`Raw` and the literal :data:`TRUE`).
:func:`generate_where` builds one from a plain mapping, :func:`is_secure`
decides whether a predicate may drive an UPDATE or DELETE, and
:func:`render_predicate` turns it into SQL with bound parameters.

Manifesto:
    An UPDATE or DELETE with no WHERE clause is the most expensive typo a
    data layer can let through. Every mutating entry point passes its
    predicate through :func:`require_secure` before touching the store.

    The guard is static: it rejects an absent predicate, the literal
    ``TRUE`` and empty conjunctions. It does not try to prove that an
    arbitrary expression such as ``Raw("1 = 1")`` is a tautology.

Examples:
    >>> generate_where({"status": "open"})
    Comparison(op='=', field='status', value='open')
    >>> generate_where({"status": "open", "total": (">", 10)})
    And(conditions=(Comparison(op='=', field='status', value='open'), Comparison(op='>', field='total', value=10)))
    >>> is_secure(None), is_secure(TRUE), is_secure(And())
    (False, False, False)

Tags:
    predicate, where-clause, guard, sql, crudspine
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence, Set
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from crudspine.entity import key_fields
from crudspine.errors import PreconditionFailed

if TYPE_CHECKING:
    from crudspine.dialect import Dialect

OPERATORS = frozenset(
    {"=", "<>", "!=", "<", "<=", ">", ">=", "like", "ilike", "is", "is not"}
)


# =============================================================================
# NODES
# =============================================================================


class _TrueLiteral:
    """The constant ``TRUE`` predicate (matches every row)."""

    _instance: _TrueLiteral | None = None

    def __new__(cls) -> _TrueLiteral:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "TRUE"

    def __reduce__(self) -> str:
        return "TRUE"


TRUE = _TrueLiteral()


@dataclass(frozen=True)
class Comparison:
    """``field <op> value``."""

    op: str
    field: str
    value: Any

    def __post_init__(self) -> None:
        if self.op.lower() not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op!r}")


@dataclass(frozen=True, init=False)
class In:
    """``field IN (values...)``."""

    field: str
    values: tuple[Any, ...]

    def __init__(self, field: str, values: Any) -> None:
        object.__setattr__(self, "field", field)
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True, init=False)
class And:
    conditions: tuple[Predicate, ...] = ()

    def __init__(self, *conditions: Predicate) -> None:
        object.__setattr__(self, "conditions", tuple(conditions))


@dataclass(frozen=True, init=False)
class Or:
    conditions: tuple[Predicate, ...] = ()

    def __init__(self, *conditions: Predicate) -> None:
        object.__setattr__(self, "conditions", tuple(conditions))


@dataclass(frozen=True, init=False)
class Raw:
    """Hand-written SQL fragment; ``?`` marks each bound parameter."""

    sql: str
    params: tuple[Any, ...] = ()

    def __init__(self, sql: str, params: Sequence[Any] = ()) -> None:
        object.__setattr__(self, "sql", sql)
        object.__setattr__(self, "params", tuple(params))


Predicate = Union[Comparison, In, And, Or, Raw, _TrueLiteral]


# =============================================================================
# BUILDING
# =============================================================================


def is_condition(value: Any) -> bool:
    """True for a two-element ``(operator, value)`` pair."""
    return (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and isinstance(value[0], str)
        and value[0].lower() in OPERATORS
    )


def generate_condition(key: str, value: Any) -> Predicate | None:
    """Build the predicate for a single ``key: value`` entry."""
    if isinstance(value, Mapping):
        return generate_where(value)
    if is_condition(value):
        operator, operand = value
        return Comparison(operator.lower(), key, operand)
    if isinstance(value, (Set, list, tuple)) or (
        isinstance(value, Sequence) and not isinstance(value, (str, bytes))
    ):
        return In(key, value)
    return Comparison("=", key, value)


def generate_where(mapping: Mapping[str, Any] | None) -> Predicate | None:
    """
    Turn a mapping of field → value/condition into a predicate.

    Several entries produce an :class:`And`, a single entry is returned
    unwrapped and an empty mapping yields ``None``.
    """
    if not mapping:
        return None
    conditions = [
        condition
        for condition in (generate_condition(k, v) for k, v in mapping.items())
        if condition is not None
    ]
    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return And(*conditions)


def conjoin(*predicates: Predicate | None) -> Predicate | None:
    """AND together the non-empty predicates."""
    present = [p for p in predicates if p is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return And(*present)


def as_predicate(where: Predicate | Mapping[str, Any] | bool | None) -> Predicate | None:
    """Accept a predicate, a mapping or ``True`` and normalize to a predicate."""
    if where is None:
        return None
    if where is True:
        return TRUE
    if isinstance(where, Mapping):
        return generate_where(where)
    if isinstance(where, (Comparison, In, And, Or, Raw, _TrueLiteral)):
        return where
    raise TypeError(f"Not a predicate: {where!r}")


def where_from_entity(entity: Any) -> Predicate | None:
    """
    Predicate matching ``entity`` by primary key.

    For composite keys, key fields holding ``None`` are left out; a single
    key is kept as-is.
    """
    fields = key_fields(entity)
    values = {f: getattr(entity, f, None) for f in fields}
    if len(fields) > 1:
        values = {f: v for f, v in values.items() if v is not None}
    return generate_where(values)


def strict_where_from_entity(entity: Any) -> Predicate | None:
    """Predicate matching ``entity`` by primary key, ``None`` values included."""
    return generate_where({f: getattr(entity, f, None) for f in key_fields(entity)})


# =============================================================================
# GUARD
# =============================================================================


def is_secure(predicate: Any) -> bool:
    """False when the predicate is absent, the literal TRUE, or an empty And/Or."""
    if predicate is None or predicate is TRUE or predicate is True:
        return False
    if isinstance(predicate, (And, Or)) and not predicate.conditions:
        return False
    return True


def require_secure(
    predicate: Any, *, table: str | None = None, operation: str | None = None
) -> Predicate:
    """Return ``predicate`` or raise :class:`PreconditionFailed`."""
    if not is_secure(predicate):
        raise PreconditionFailed(where=predicate).with_context(
            table=table, operation=operation
        )
    return predicate


# =============================================================================
# RENDERING
# =============================================================================


def quote_field(field: str, dialect: Dialect) -> str:
    """Quote a possibly qualified field (``order/id`` or ``order.id``)."""
    parts = field.replace("/", ".").split(".")
    return ".".join(dialect.quote(part) for part in parts)


def substitute_markers(sql: str, dialect: Dialect, start: int) -> str:
    """Replace the ``?`` markers of a raw fragment with dialect placeholders."""
    out: list[str] = []
    index = start
    for ch in sql:
        if ch == "?":
            out.append(dialect.placeholder(index))
            index += 1
        else:
            out.append(ch)
    return "".join(out)


def render_predicate(predicate: Predicate, dialect: Dialect, params: list[Any]) -> str:
    """Render ``predicate`` to SQL, appending bound values to ``params``."""
    if predicate is TRUE:
        return dialect.boolean_true() + " = " + dialect.boolean_true()

    if isinstance(predicate, Comparison):
        column = quote_field(predicate.field, dialect)
        op = predicate.op.upper()
        if op in ("IS", "IS NOT") and predicate.value is None:
            return f"{column} {op} NULL"
        params.append(predicate.value)
        return f"{column} {op} {dialect.placeholder(len(params) - 1)}"

    if isinstance(predicate, In):
        if not predicate.values:
            return "1 = 0"
        column = quote_field(predicate.field, dialect)
        marks = []
        for value in predicate.values:
            params.append(value)
            marks.append(dialect.placeholder(len(params) - 1))
        return f"{column} IN ({', '.join(marks)})"

    if isinstance(predicate, (And, Or)):
        if not predicate.conditions:
            return "1 = 1" if isinstance(predicate, And) else "1 = 0"
        joiner = " AND " if isinstance(predicate, And) else " OR "
        parts = [render_predicate(c, dialect, params) for c in predicate.conditions]
        if len(parts) == 1:
            return parts[0]
        return "(" + joiner.join(parts) + ")"

    if isinstance(predicate, Raw):
        sql = substitute_markers(predicate.sql, dialect, len(params))
        params.extend(predicate.params)
        return sql

    raise TypeError(f"Cannot render predicate: {predicate!r}")


__all__ = [
    "TRUE",
    "OPERATORS",
    "Predicate",
    "Comparison",
    "In",
    "And",
    "Or",
    "Raw",
    "is_condition",
    "generate_condition",
    "generate_where",
    "conjoin",
    "as_predicate",
    "where_from_entity",
    "strict_where_from_entity",
    "is_secure",
    "require_secure",
    "quote_field",
    "substitute_markers",
    "render_predicate",
]
