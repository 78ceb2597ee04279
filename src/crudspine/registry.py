"""
Record constructor registry.

Every type the engine materializes from a row must be registered here with
a constructor. :class:`crudspine.Entity` subclasses register themselves
when the class is defined; dataclasses and other record types call
:func:`register_record` (usable as a class decorator).

The registry also holds the relation resolvers used by the pull resolver:
``register_resolver(Order, "lines", load_lines)`` declares how the
``lines`` slot of an ``Order`` is filled.

Examples:
    >>> @register_record
    ... @dataclass(frozen=True)
    ... class Tag:
    ...     id: int | None = None
    ...     label: str | None = None
    >>> empty_record(Tag)
    Tag(id=None, label=None)
    >>> renew(Tag, {"id": 3, "label": "urgent", "legacy": 1})
    Tag(id=3, label='urgent')
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel

from crudspine.errors import UnregisteredType
from crudspine.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Resolver = Callable[..., Any]

_constructors: dict[type, Callable[..., Any]] = {}
_resolvers: dict[type, dict[str, Resolver]] = {}


def register_record(cls: type[T], constructor: Callable[..., T] | None = None) -> type[T]:
    """Register ``cls`` with ``constructor`` (the class itself by default)."""
    _constructors[cls] = constructor or cls
    logger.debug("record_registered", record=cls.__qualname__)
    return cls


def unregister_record(cls: type) -> None:
    _constructors.pop(cls, None)
    _resolvers.pop(cls, None)


def is_registered(cls: type) -> bool:
    return cls in _constructors


def constructor_for(cls: type[T]) -> Callable[..., T]:
    """Constructor registered for ``cls``.

    Raises:
        UnregisteredType: when ``cls`` was never registered.
    """
    try:
        return _constructors[cls]
    except KeyError:
        raise UnregisteredType(
            f"No record constructor registered for {cls.__qualname__}"
        ).with_context(record=cls.__qualname__) from None


def record_type(type_or_entity: Any) -> type:
    return type_or_entity if isinstance(type_or_entity, type) else type(type_or_entity)


def record_fields(cls: type) -> list[str] | None:
    """Declared field names of ``cls``, or ``None`` when it has no schema."""
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        return list(cls.model_fields)
    if dataclasses.is_dataclass(cls):
        return [f.name for f in dataclasses.fields(cls)]
    return None


def empty_record(type_or_entity: Any) -> Any:
    """Zero value of a record type: every field at its default."""
    return constructor_for(record_type(type_or_entity))()


def renew(type_or_entity: Any, row: Mapping[str, Any]) -> Any:
    """
    Build a record of the given type from ``row``.

    Equivalent to the zero value updated with the row's fields. Keys that
    are not fields of the type are ignored.
    """
    cls = record_type(type_or_entity)
    constructor = constructor_for(cls)
    fields = record_fields(cls)
    if fields is None:
        return constructor(**row)
    known = set(fields)
    return constructor(**{k: v for k, v in row.items() if k in known})


# =============================================================================
# RELATION RESOLVERS
# =============================================================================


def register_resolver(
    cls: type, slot: str, fn: Resolver | None = None
) -> Any:
    """
    Declare how ``slot`` of ``cls`` is loaded.

    ``fn(scope, entity, subpull)`` returns the related entities. Usable as
    a decorator when ``fn`` is omitted.
    """

    def decorator(resolver: Resolver) -> Resolver:
        _resolvers.setdefault(cls, {})[slot] = resolver
        logger.debug("resolver_registered", record=cls.__qualname__, slot=slot)
        return resolver

    if fn is None:
        return decorator
    return decorator(fn)


def unregister_resolver(cls: type, slot: str) -> None:
    _resolvers.get(cls, {}).pop(slot, None)


def resolvers_for(type_or_entity: Any) -> dict[str, Resolver]:
    """Slot → resolver mapping registered for a record type (a copy)."""
    return dict(_resolvers.get(record_type(type_or_entity), {}))


__all__ = [
    "Resolver",
    "register_record",
    "unregister_record",
    "is_registered",
    "constructor_for",
    "record_type",
    "record_fields",
    "empty_record",
    "renew",
    "register_resolver",
    "unregister_resolver",
    "resolvers_for",
]
