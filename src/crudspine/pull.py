"""
Pull resolver: lazy, on-demand expansion of relation slots.

A pull query says which fields and which relation slots a caller wants::

    ["id", "status", {"lines": ["id", "sku"]}, {"customer": ["*"]}]

Scalar names (optionally qualified, ``"order/id"``) shape the SELECT
projection; mappings name relation slots together with the pull query to
use for the related entities. ``"*"`` selects every column.

:func:`pull` does not load anything. It stores a :class:`Lazy` in every
requested slot that has a resolver; the resolver runs the first time the
slot is read through :func:`resolve` (or ``Lazy.get()``), and at most
once. Slots that were not requested, or that have no resolver, are left
untouched.

Examples:
    >>> subpulls(["id", {"lines": ["id"]}, {"customer": ["*"]}])
    {'lines': ['id'], 'customer': ['*']}
    >>> pull_to_select(["order/id", "status", {"lines": ["id"]}])
    ['id', 'status']
    >>> pull_to_select(["*", {"lines": ["id"]}])
    ['*']
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Generic, TypeVar

from crudspine.entity import assoc
from crudspine.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

WILDCARD = "*"

_UNSET: Any = object()


class Lazy(Generic[T]):
    """A value computed on first access, then cached."""

    __slots__ = ("_thunk", "_value")

    def __init__(self, thunk: Callable[[], T]):
        self._thunk: Callable[[], T] | None = thunk
        self._value: Any = _UNSET

    @classmethod
    def of(cls, value: T) -> Lazy[T]:
        """An already resolved ``Lazy``."""
        lazy: Lazy[T] = cls(lambda: value)
        lazy.get()
        return lazy

    @property
    def resolved(self) -> bool:
        return self._value is not _UNSET

    def get(self) -> T:
        if self._value is _UNSET:
            thunk = self._thunk
            assert thunk is not None
            self._value = thunk()
            self._thunk = None
        return self._value

    def __repr__(self) -> str:
        if self.resolved:
            return f"Lazy({self._value!r})"
        return "Lazy(<unresolved>)"


def force(value: Any) -> Any:
    """Resolve ``value`` when it is a :class:`Lazy`, return it unchanged otherwise."""
    return value.get() if isinstance(value, Lazy) else value


def subpulls(pullq: Sequence[Any] | None) -> dict[str, Any]:
    """Merge the mapping parts of a pull query into ``{slot: subquery}``."""
    merged: dict[str, Any] = {}
    for item in pullq or ():
        if isinstance(item, Mapping):
            merged.update(item)
    return merged


def pull_to_select(pullq: Sequence[Any] | None) -> list[str]:
    """Projection for a pull query: ``["*"]`` on wildcard, else scalar names."""
    if not pullq or WILDCARD in pullq:
        return [WILDCARD]
    columns = []
    for item in pullq:
        if isinstance(item, str):
            columns.append(item.replace(".", "/").rsplit("/", 1)[-1])
    return columns or [WILDCARD]


def pull(
    scope: Any,
    resolvers: Mapping[str, Callable[..., Any]],
    entity: Any,
    pullq: Sequence[Any] = (WILDCARD,),
) -> Any:
    """
    Attach lazy relation loaders to ``entity``.

    Every slot present in both ``resolvers`` and ``subpulls(pullq)`` gets a
    :class:`Lazy` of ``resolver(scope, entity, subpull)``. Returns a new
    entity; the input is not modified.
    """
    wanted = subpulls(pullq)
    slots = [name for name in wanted if name in resolvers]
    if not slots:
        return entity

    def loader(fn: Callable[..., Any], subpull: Any) -> Lazy[Any]:
        return Lazy(lambda: fn(scope, entity, subpull))

    changes = {name: loader(resolvers[name], wanted[name]) for name in slots}
    logger.debug("pull_attached", record=type(entity).__name__, slots=slots)
    return assoc(entity, **changes)


def resolve(entity: Any, slot: str) -> Any:
    """Read ``slot`` of ``entity``, forcing a pending :class:`Lazy`."""
    return force(getattr(entity, slot, None))


__all__ = [
    "WILDCARD",
    "Lazy",
    "force",
    "subpulls",
    "pull_to_select",
    "pull",
    "resolve",
]
