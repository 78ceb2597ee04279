"""
CRUD engine: fetch, save (upsert), update, delete and batch insert.

Every operation takes a :class:`~crudspine.scope.Scope` and an entity or
an entity type. The table comes from :func:`crudspine.entity.store`, the
columns and primary keys from the scope's catalog.

Manifesto:
    - **No accidental full scans:** a fetch without any condition returns
      ``[]`` instead of the whole table.
    - **No unconditioned writes:** update and delete refuse to run unless
      :func:`crudspine.predicate.is_secure` accepts their predicate. The
      check happens before any side effect.
    - **Saves return what the store holds:** after an insert or update the
      row is fetched back, so store defaults and generated keys show up in
      the returned entity.
    - **Per-store overrides:** ``fetch``, ``save`` and ``delete`` go through
      the dispatch tables of :mod:`crudspine.dispatch`.

Architecture::

    save(scope, order)
      │ save_handlers["orders"] (default: save_entity)
      ▼
    unit_of_work ──► UPDATE by catalog primary key
                       │ 0 rows / key missing
                       ▼
                     INSERT (None columns omitted, generate_id consulted)
                       │
                       ▼
                     SELECT by recovered key ──► from_row(Order, row)

Examples:
    >>> saved = save(scope, Order(customer_id=1, status="new"))
    >>> saved.id
    1
    >>> fetch(scope, Order, {"status": "new"})
    [Order(id=1, customer_id=1, status='new')]
    >>> delete(scope, saved)
    1

Tags:
    crud, upsert, fetch, delete, batch-insert, crudspine
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

from crudspine.dispatch import (
    DEFAULT,
    delete_handlers,
    fetch_handlers,
    generate_id,
    save_handlers,
)
from crudspine.entity import assoc, has_identity, key_fields, store
from crudspine.errors import MissingPrimaryKey
from crudspine.executor import generated_key
from crudspine.logging import LogContext, get_logger
from crudspine.predicate import (
    In,
    Or,
    Predicate,
    as_predicate,
    generate_where,
    require_secure,
    strict_where_from_entity,
    where_from_entity,
)
from crudspine.pull import pull as attach_pull
from crudspine.pull import pull_to_select, subpulls
from crudspine.query import Delete, Insert, OrderTerm, Select, Update
from crudspine.registry import record_type, resolvers_for
from crudspine.scope import Scope
from crudspine.translate import coerce_value, from_row, remove_nils, to_row

logger = get_logger(__name__)

E = TypeVar("E")

Where = Predicate | Mapping[str, Any] | bool | None


# =============================================================================
# HELPERS
# =============================================================================


def _attach(scope: Scope, entities: list[Any], pullq: Sequence[Any] | None) -> list[Any]:
    if not entities or not subpulls(pullq):
        return entities
    resolvers = resolvers_for(entities[0])
    return [attach_pull(scope, resolvers, e, pullq) for e in entities]


def _key_predicate(keys: Sequence[Mapping[str, Any]]) -> Predicate | None:
    """One predicate matching every key: IN for single keys, OR of ANDs otherwise."""
    if not keys:
        return None
    fields = list(keys[0])
    if len(fields) == 1:
        return In(fields[0], [k[fields[0]] for k in keys])
    return Or(*(generate_where(k) for k in keys))


def _fetch_rows(scope: Scope, table: str, predicate: Predicate | None, pullq: Any = None) -> list[dict[str, Any]]:
    return scope.executor.rows(
        Select(table, columns=tuple(pull_to_select(pullq)), where=predicate)
    )


def _with_generated_id(table: str, entity: Any) -> Any:
    """Fill client-generated key values when the entity has none."""
    if has_identity(entity):
        return entity
    generated = generate_id(table, entity)
    if generated is None:
        return entity
    fields = key_fields(entity)
    if isinstance(generated, Mapping):
        return assoc(entity, **{f: generated[f] for f in fields if f in generated})
    if len(fields) == 1:
        return assoc(entity, **{fields[0]: generated})
    return assoc(entity, **dict(zip(fields, generated)))


def _returning(scope: Scope, table: str, fields: Sequence[str]) -> tuple[str, ...]:
    if not scope.dialect.supports_returning:
        return ()
    columns = set(scope.catalog.columns(table))
    return tuple(fields) if all(f in columns for f in fields) else ()


def _recovered_key(entity: Any, result_item: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Key of the row written for ``entity``: its identity, else what the store reported."""
    fields = key_fields(entity)
    if has_identity(entity):
        return {f: coerce_value(getattr(entity, f)) for f in fields}
    if not result_item:
        return None
    if all(result_item.get(f) is not None for f in fields):
        return {f: result_item[f] for f in fields}
    key = generated_key(result_item)
    if key is not None and len(fields) == 1:
        return {fields[0]: key}
    return None


def _addressable(scope: Scope, table: str, key: dict[str, Any] | None) -> dict[str, Any] | None:
    """``key`` when every key field is a column of ``table``; a bare rowid is not."""
    if key is None:
        return None
    columns = set(scope.catalog.columns(table))
    return key if all(f in columns for f in key) else None


def _recover(scope: Scope, entity: Any, key: Mapping[str, Any]) -> Any:
    rows = _fetch_rows(scope, store(entity), generate_where(key))
    return from_row(record_type(entity), rows[0]) if rows else None


# =============================================================================
# FETCH
# =============================================================================


def fetch_entities(
    scope: Scope,
    target: Any,
    where: Where = None,
    *,
    pull: Sequence[Any] | None = None,
    union: Sequence[Where] | None = None,
    intersect: Sequence[Where] | None = None,
    order_by: Sequence[OrderTerm] | None = None,
    limit: int | None = None,
) -> list[Any]:
    """Generic fetch (the default ``fetch_handlers`` entry)."""
    table = store(target)
    predicate = as_predicate(where)
    if predicate is None and not (union or intersect) and not isinstance(target, type):
        predicate = where_from_entity(target)

    unions = tuple(p for p in (as_predicate(u) for u in union or ()) if p is not None)
    intersects = tuple(p for p in (as_predicate(i) for i in intersect or ()) if p is not None)

    statement = Select(
        table,
        columns=tuple(pull_to_select(pull)),
        where=predicate,
        union=unions,
        intersect=intersects,
        order_by=tuple(order_by or ()),
        limit=limit,
    )
    if not statement.has_condition:
        logger.debug("fetch_skipped", table=table, reason="no condition")
        return []

    with LogContext(crud_operation="fetch"):
        rows = scope.executor.rows(statement)
    entities = [from_row(target, row) for row in rows]
    logger.debug("fetched", table=table, rows=len(entities))
    return _attach(scope, entities, pull)


def fetch(scope: Scope, target: Any, where: Where = None, **kwargs: Any) -> list[Any]:
    """
    Fetch entities of ``target``'s type.

    ``where`` is a predicate or a mapping (see :func:`generate_where`).
    When ``target`` is an entity and ``where`` is omitted, the entity is
    fetched by identity. Without any condition, union or intersection the
    result is ``[]``.

    Keyword arguments: ``pull``, ``union``, ``intersect``, ``order_by``,
    ``limit``.
    """
    return fetch_handlers(store(target), scope, target, where, **kwargs)


def fetch_one(scope: Scope, target: Any, where: Where = None, **kwargs: Any) -> Any | None:
    """First result of :func:`fetch`, or ``None``."""
    kwargs.setdefault("limit", 1)
    results = fetch(scope, target, where, **kwargs)
    return results[0] if results else None


def fetch_by(scope: Scope, target: Any, mapping: Mapping[str, Any], **kwargs: Any) -> list[Any]:
    """:func:`fetch` with a mapping condition."""
    return fetch(scope, target, generate_where(mapping), **kwargs)


# =============================================================================
# SAVE / UPDATE
# =============================================================================


def _update_by_primary_key(scope: Scope, table: str, row: Mapping[str, Any]) -> dict[str, Any] | None:
    """UPDATE the row with ``row``'s primary key; its key when a row was affected."""
    pks = scope.catalog.primary_keys(table)
    if not pks or any(row.get(pk) is None for pk in pks):
        return None
    key = {pk: row[pk] for pk in pks}
    values = {c: v for c, v in row.items() if c not in key} or dict(key)
    count = scope.executor.execute(Update(table, values, generate_where(key)))
    return key if count and count > 0 else None


def _insert_one(scope: Scope, table: str, entity: Any) -> dict[str, Any] | None:
    row = remove_nils(to_row(scope.catalog, table, entity))
    returning = _returning(scope, table, key_fields(entity))
    result = scope.executor.insert(Insert(table, (row,), returning))
    return _addressable(scope, table, _recovered_key(entity, result[0] if result else None))


def save_entity(scope: Scope, entity: Any) -> Any | None:
    """Generic upsert (the default ``save_handlers`` entry)."""
    table = store(entity)
    with LogContext(crud_operation="save", table=table), scope.unit_of_work():
        row = to_row(scope.catalog, table, entity)
        key = _update_by_primary_key(scope, table, row)
        if key is None:
            entity = _with_generated_id(table, entity)
            key = _insert_one(scope, table, entity)
            action = "inserted"
        else:
            action = "updated"
        if key is None:
            logger.warning("save_unrecoverable", table=table)
            return None
        saved = _recover(scope, entity, key)
    logger.debug("saved", table=table, action=action, key=key)
    return saved


def save(scope: Scope, entity: E) -> E | None:
    """
    Upsert ``entity`` and return it as stored.

    Updates by the table's primary key first; when no row is affected (or
    the key is unset) the entity is inserted. Returns ``None`` when the
    written row cannot be recovered.
    """
    return save_handlers(store(entity), scope, entity)


def update_entity(scope: Scope, entity: E) -> E | None:
    """
    Update ``entity`` by primary key only (never inserts).

    Raises:
        MissingPrimaryKey: the table has no primary key, or the entity
            lacks a value for one of its columns.
    """
    table = store(entity)
    pks = scope.catalog.primary_keys(table)
    if not pks:
        raise MissingPrimaryKey(
            f"Table {table} has no primary key", primary_keys=pks
        ).with_context(table=table, operation="update_entity")

    row = to_row(scope.catalog, table, entity)
    missing = [pk for pk in pks if row.get(pk) is None]
    if missing:
        raise MissingPrimaryKey(
            f"Entity has no value for primary key column(s) {', '.join(missing)}",
            primary_keys=pks,
        ).with_context(table=table, operation="update_entity")

    with LogContext(crud_operation="update_entity", table=table), scope.unit_of_work():
        key = _update_by_primary_key(scope, table, row)
        return _recover(scope, entity, key) if key is not None else None


def update(
    scope: Scope,
    target: Any,
    values: Mapping[str, Any] | Any,
    where: Where,
    *,
    pull: Sequence[Any] | None = None,
) -> list[Any] | int:
    """
    ``UPDATE`` every row matching ``where`` with ``values``.

    ``values`` is a mapping (a ``None`` value sets the column to NULL) or
    an entity, whose unset fields are left alone. Returns the updated
    entities when the dialect supports ``RETURNING``, else the affected
    row count.

    Raises:
        PreconditionFailed: ``where`` is absent, ``TRUE`` or empty.
    """
    table = store(target)
    predicate = require_secure(as_predicate(where), table=table, operation="update")

    row = to_row(scope.catalog, table, values)
    if not isinstance(values, Mapping):
        row = remove_nils(row)
    if not row:
        raise ValueError(f"No column of {table} in update values")

    with LogContext(crud_operation="update", table=table), scope.unit_of_work():
        if scope.dialect.supports_returning:
            rows = scope.executor.rows(
                Update(table, row, predicate, returning=tuple(pull_to_select(pull)))
            )
            entities = [from_row(target, r) for r in rows]
            logger.debug("updated", table=table, rows=len(entities))
            return _attach(scope, entities, pull)
        count = scope.executor.execute(Update(table, row, predicate))
    logger.debug("updated", table=table, rows=count)
    return count


# =============================================================================
# DELETE
# =============================================================================


def delete_entities(scope: Scope, target: Any, where: Where = None) -> int:
    """Generic delete (the default ``delete_handlers`` entry)."""
    table = store(target)
    predicate = as_predicate(where)
    if predicate is None and not isinstance(target, type):
        predicate = strict_where_from_entity(target)
    require_secure(predicate, table=table, operation="delete")

    with LogContext(crud_operation="delete", table=table), scope.unit_of_work():
        count = scope.executor.execute(Delete(table, predicate))
    logger.debug("deleted", table=table, rows=count)
    return count


def delete(scope: Scope, target: Any, where: Where = None) -> int:
    """
    Delete rows of ``target``'s table; returns the number deleted.

    Without ``where`` an entity is deleted by identity (``None`` key
    values included, so a key-less entity matches nothing).

    Raises:
        PreconditionFailed: the resulting predicate is absent, ``TRUE``
            or empty.
    """
    return delete_handlers(store(target), scope, target, where)


# =============================================================================
# BATCH INSERT / RAW QUERY
# =============================================================================


def insert_multi(scope: Scope, entities: Sequence[E]) -> list[E]:
    """
    Insert ``entities`` in one batch and return them as stored, in input order.

    Generated keys are re-fetched with a single predicate (``IN`` for a
    single key, an ``OR`` of ``AND``s for composite keys).
    """
    if not entities:
        return []
    first = entities[0]
    table = store(first)
    cls = record_type(first)

    prepared = [_with_generated_id(table, e) for e in entities]
    rows = [remove_nils(to_row(scope.catalog, table, e)) for e in prepared]
    returning = _returning(scope, table, key_fields(first))

    with LogContext(crud_operation="insert_multi", table=table), scope.unit_of_work():
        results = scope.executor.insert(Insert(table, tuple(rows), returning))
        reported = list(results) + [None] * (len(prepared) - len(results))
        keys = [
            _addressable(scope, table, _recovered_key(entity, item))
            for entity, item in zip(prepared, reported)
        ]
        known = [k for k in keys if k is not None]
        if not known:
            return []
        fetched = _fetch_rows(scope, table, _key_predicate(known))

    fields = key_fields(first)
    by_key = {tuple(r.get(f) for f in fields): r for r in fetched}
    ordered = []
    for key in keys:
        if key is None:
            continue
        row = by_key.get(tuple(key[f] for f in fields))
        if row is not None:
            ordered.append(from_row(cls, row))
    logger.debug("inserted", table=table, rows=len(ordered))
    return ordered


def query(scope: Scope, target: Any, sql: str, params: Sequence[Any] = ()) -> list[Any]:
    """Run hand-written SQL (``?`` markers) and renew each row as ``target``."""
    with LogContext(crud_operation="query"):
        rows = scope.executor.raw(sql, tuple(params))
    return [from_row(target, r) for r in rows]


# Install the generic implementations as the dispatch defaults.
fetch_handlers.register(DEFAULT)(fetch_entities)
save_handlers.register(DEFAULT)(save_entity)
delete_handlers.register(DEFAULT)(delete_entities)


__all__ = [
    "fetch",
    "fetch_one",
    "fetch_by",
    "fetch_entities",
    "save",
    "save_entity",
    "update_entity",
    "update",
    "delete",
    "delete_entities",
    "insert_multi",
    "query",
]
