"""
Entity ⇄ row translation.

``to_row`` flattens a record into the columns a table actually has and
coerces values into types every driver binds (JSON text for collections
and nested models, ISO-8601 text for dates, plain values for enums and
UUIDs). ``from_row`` goes the other way: it cleans up a fetched row and
builds a record of the requested type.

Qualified keys:
    A mapping may carry keys qualified by entity name, ``"order/id"`` or
    ``"order.id"``. When writing to ``orders`` only keys whose qualifier
    is ``order`` (the singular of the table name) are kept, stripped of
    the qualifier. Unqualified keys are always candidates.

Examples:
    >>> to_row(catalog, "orders", {"order/id": 1, "customer/id": 9, "status": "new"})
    {'id': 1, 'status': 'new'}
    >>> from_row(Order, {"id": 1, "status": "new", "_rownum": 1, "note": None})
    Order(id=1, customer_id=None, status='new')

Tags:
    translation, row, json, coercion, crudspine
"""

from __future__ import annotations

import dataclasses
import json
import types
import typing
from collections import abc
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Union
from uuid import UUID

from pydantic import BaseModel

from crudspine.entity import singular
from crudspine.protocols import Catalog
from crudspine.pull import Lazy
from crudspine.registry import record_fields, record_type, renew

_COLLECTION_TYPES = (dict, list, tuple, set, frozenset)
_COLLECTION_ORIGINS = (
    dict,
    list,
    tuple,
    set,
    frozenset,
    abc.Mapping,
    abc.MutableMapping,
    abc.Sequence,
    abc.MutableSequence,
    abc.Set,
    abc.MutableSet,
)


# =============================================================================
# ENTITY → ROW
# =============================================================================


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset)):
        return list(value)
    coerced = coerce_value(value)
    if coerced is value:
        return str(value)
    return coerced


def coerce_value(value: Any) -> Any:
    """Coerce one value into something every driver can bind."""
    if value is None or isinstance(value, (bool, int, float, str, bytes)):
        return value
    if isinstance(value, BaseModel):
        return json.dumps(value.model_dump(mode="json"))
    if isinstance(value, _COLLECTION_TYPES):
        return json.dumps(value, default=_json_default)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def entity_fields(entity: Any) -> dict[str, Any]:
    """Field name → value of a record (relation slots included)."""
    if isinstance(entity, Mapping):
        return dict(entity)
    if isinstance(entity, BaseModel):
        return {name: getattr(entity, name) for name in type(entity).model_fields}
    if dataclasses.is_dataclass(entity) and not isinstance(entity, type):
        return {f.name: getattr(entity, f.name) for f in dataclasses.fields(entity)}
    return dict(vars(entity))


def _unqualify(key: str, table_singular: str) -> str | None:
    for separator in ("/", "."):
        if separator in key:
            qualifier, _, name = key.rpartition(separator)
            return name if qualifier == table_singular else None
    return key


def to_row(catalog: Catalog, table: str, entity: Any) -> dict[str, Any]:
    """Flatten ``entity`` into a row restricted to ``table``'s columns."""
    columns = catalog.columns(table)
    known = set(columns)
    table_singular = singular(table)

    row: dict[str, Any] = {}
    for key, value in entity_fields(entity).items():
        name = _unqualify(key, table_singular)
        if name is None or name not in known or isinstance(value, Lazy):
            continue
        row[name] = coerce_value(value)
    return row


def to_rows(catalog: Catalog, table: str, entities: Iterable[Any]) -> list[dict[str, Any]]:
    return [to_row(catalog, table, e) for e in entities]


def remove_nils(row: Mapping[str, Any]) -> dict[str, Any]:
    """Drop ``None`` values (the store applies its own defaults)."""
    return {k: v for k, v in row.items() if v is not None}


# =============================================================================
# ROW → ENTITY
# =============================================================================


def normalize_row(row: Mapping[str, Any], fields: Iterable[str] | None = None) -> dict[str, Any]:
    """
    Drop ``None`` values and ``_``-prefixed keys.

    With ``fields``, each key is matched case-insensitively to a declared
    field name and takes that spelling; keys matching no field are kept
    as they are. Without ``fields`` every key is lowercased.
    """
    by_lower = {name.lower(): name for name in fields} if fields is not None else None
    normalized: dict[str, Any] = {}
    for k, v in row.items():
        key = str(k)
        if v is None or key.startswith("_"):
            continue
        if by_lower is None:
            normalized[key.lower()] = v
        else:
            normalized[by_lower.get(key.lower(), key)] = v
    return normalized


def _unwrap_optional(annotation: Any) -> Any:
    if typing.get_origin(annotation) in (Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _is_structured(annotation: Any) -> bool:
    annotation = _unwrap_optional(annotation)
    origin = typing.get_origin(annotation)
    if origin is not None:
        return origin in _COLLECTION_ORIGINS
    if isinstance(annotation, type):
        return issubclass(annotation, (BaseModel, *_COLLECTION_TYPES))
    return False


def _field_annotations(cls: type) -> dict[str, Any]:
    if issubclass(cls, BaseModel):
        return {name: info.annotation for name, info in cls.model_fields.items()}
    if dataclasses.is_dataclass(cls):
        try:
            return typing.get_type_hints(cls)
        except (NameError, TypeError):
            return {f.name: f.type for f in dataclasses.fields(cls)}
    return {}


def decode_structured(cls: type, row: Mapping[str, Any]) -> dict[str, Any]:
    """JSON-decode text values of fields annotated as collections or models."""
    annotations = _field_annotations(cls)
    decoded = dict(row)
    for name, value in row.items():
        if isinstance(value, str) and _is_structured(annotations.get(name)):
            try:
                decoded[name] = json.loads(value)
            except ValueError:
                decoded[name] = value
    return decoded


def from_row(type_or_entity: Any, row: Mapping[str, Any]) -> Any:
    """Build a record of the given type from a fetched row."""
    cls = record_type(type_or_entity)
    return renew(cls, decode_structured(cls, normalize_row(row, record_fields(cls))))


def from_rows(type_or_entity: Any, rows: Iterable[Mapping[str, Any]]) -> list[Any]:
    return [from_row(type_or_entity, r) for r in rows]


__all__ = [
    "coerce_value",
    "entity_fields",
    "to_row",
    "to_rows",
    "remove_nils",
    "normalize_row",
    "decode_structured",
    "from_row",
    "from_rows",
]
