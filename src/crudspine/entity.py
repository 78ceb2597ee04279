"""
Entity protocol: primary key, identity and storage location.

Manifesto:
    Any record type can be persisted as long as the engine can answer
    three questions about it: which field(s) form its primary key, what
    its identity value is, and which table it lives in. Sensible defaults
    (``id`` and the pluralized snake_case type name) mean most types need
    no configuration at all.

Architecture:
    ::

        Entity (frozen pydantic BaseModel)
          __primary_key__ = "id"            ─┐
          __store__       = None (derived)   ├─ overridable class attributes
          primary_key() / store() / identity()

        primary_key(x) / identity(x) / store(x)
          module-level functions giving the same defaults to any object
          (frozen dataclasses, plain classes) registered in
          crudspine.registry

Examples:
    >>> class OrderLine(Entity):
    ...     id: int | None = None
    ...     order_id: int | None = None
    >>> OrderLine.store()
    'order_lines'
    >>> OrderLine(id=7).identity()
    7
    >>> assoc(OrderLine(id=7), order_id=1)
    OrderLine(id=7, order_id=1)

Tags:
    entity, identity, primary-key, pydantic, crudspine
"""

from __future__ import annotations

import copy
import dataclasses
from typing import Any, ClassVar

import inflection
from pydantic import BaseModel, ConfigDict, Field

from crudspine.registry import record_type, register_record

DEFAULT_PRIMARY_KEY = "id"


def default_store_name(cls: type) -> str:
    """Pluralized snake_case name of ``cls`` (``OrderLine`` → ``order_lines``)."""
    name = cls.__qualname__.rsplit(".", 1)[-1]
    return inflection.pluralize(inflection.underscore(name))


def singular(table: str) -> str:
    """Singular form of a table name (``order_lines`` → ``order_line``)."""
    return inflection.singularize(table)


class Entity(BaseModel):
    """
    Base class for persistable records.

    Subclasses are frozen pydantic models; they register with the record
    registry when defined. Override ``__primary_key__`` (a field name or a
    tuple of field names) and ``__store__`` as needed.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", arbitrary_types_allowed=True)

    __primary_key__: ClassVar[str | tuple[str, ...]] = DEFAULT_PRIMARY_KEY
    __store__: ClassVar[str | None] = None

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        register_record(cls)

    @classmethod
    def primary_key(cls) -> str | tuple[str, ...]:
        return cls.__primary_key__

    @classmethod
    def store(cls) -> str:
        return cls.__store__ or default_store_name(cls)

    def identity(self) -> Any:
        pk = type(self).primary_key()
        if isinstance(pk, str):
            return getattr(self, pk, None)
        return tuple(getattr(self, f, None) for f in pk)

    def assoc(self, **changes: Any) -> Entity:
        """Copy of this entity with ``changes`` applied."""
        return self.model_copy(update=changes)


def slot(**kwargs: Any) -> Any:
    """Declare a relation slot: never stored as a column, ``None`` until pulled."""
    kwargs.setdefault("default", None)
    kwargs.setdefault("exclude", True)
    return Field(**kwargs)


# =============================================================================
# PROTOCOL DEFAULTS FOR ANY OBJECT
# =============================================================================


def primary_key(entity_or_type: Any) -> str | tuple[str, ...]:
    """Primary-key field name(s) of an entity or entity type."""
    cls = record_type(entity_or_type)
    if isinstance(cls, type) and issubclass(cls, Entity):
        return cls.primary_key()
    return getattr(cls, "__primary_key__", DEFAULT_PRIMARY_KEY)


def store(entity_or_type: Any) -> str:
    """Table name of an entity or entity type."""
    cls = record_type(entity_or_type)
    if isinstance(cls, type) and issubclass(cls, Entity):
        return cls.store()
    return getattr(cls, "__store__", None) or default_store_name(cls)


def identity(entity: Any) -> Any:
    """Value of the primary key (a tuple for composite keys)."""
    if isinstance(entity, Entity):
        return entity.identity()
    pk = primary_key(entity)
    if isinstance(pk, str):
        return getattr(entity, pk, None)
    return tuple(getattr(entity, f, None) for f in pk)


def key_fields(entity_or_type: Any) -> tuple[str, ...]:
    pk = primary_key(entity_or_type)
    return (pk,) if isinstance(pk, str) else tuple(pk)


def has_identity(entity: Any) -> bool:
    """True when every primary-key field holds a value."""
    return all(getattr(entity, f, None) is not None for f in key_fields(entity))


def assoc(entity: Any, **changes: Any) -> Any:
    """Return a copy of ``entity`` with ``changes`` applied; never mutates."""
    if isinstance(entity, BaseModel):
        return entity.model_copy(update=changes)
    if dataclasses.is_dataclass(entity) and not isinstance(entity, type):
        return dataclasses.replace(entity, **changes)
    clone = copy.copy(entity)
    for name, value in changes.items():
        setattr(clone, name, value)
    return clone


__all__ = [
    "DEFAULT_PRIMARY_KEY",
    "Entity",
    "slot",
    "default_store_name",
    "singular",
    "primary_key",
    "store",
    "identity",
    "key_fields",
    "has_identity",
    "assoc",
]
