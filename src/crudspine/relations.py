"""
One-to-many relations: subentity synchronization and in-memory joins.

``sync_children`` saves the children held in a parent's relation slot and
deletes the ones the store still has but the slot no longer lists::

    desired = parent.lines                     # what the caller wants
    actual  = loader(scope, parent)            # what the store has
    save every desired child (relation key set to the parent's identity)
    then delete every actual child whose identity is not desired

Saves always run before deletes, and the whole synchronization is one
unit of work.

``join`` attaches already-fetched subentities to their parents without
touching the store.

Examples:
    >>> order = order.assoc(lines=[line_a, line_b])
    >>> result = sync_children(scope, order, "lines", "order_id", load_lines)
    >>> [line.order_id for line in result.saved]
    [1, 1]
    >>> [o.lines for o in join(orders, lines, "lines", "order_id", one_to_one=False)]
    [[...], []]
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from crudspine import crud
from crudspine.entity import assoc, identity
from crudspine.logging import get_logger
from crudspine.pull import force
from crudspine.scope import Scope

logger = get_logger(__name__)

Loader = Callable[[Scope, Any], Sequence[Any]]


@dataclass
class SyncResult:
    """Outcome of :func:`sync_children`."""

    saved: list[Any] = field(default_factory=list)
    deleted: list[Any] = field(default_factory=list)


def sync_children(
    scope: Scope,
    parent: Any,
    children_slot: str,
    relation_key: str,
    loader: Loader,
) -> SyncResult | None:
    """
    Synchronize the one-to-many relation held in ``parent.<children_slot>``.

    Args:
        scope: Scope to run in.
        parent: Entity owning the relation.
        children_slot: Slot holding the desired children (list, tuple or a
            ``Lazy`` resolving to one). ``None`` means "leave alone".
        relation_key: Field of a child referencing the parent's identity.
        loader: ``loader(scope, parent)`` returns the children currently
            stored.

    Returns:
        The saved and deleted children, or ``None`` when the slot is empty.

    Raises:
        TypeError: the slot holds something other than a list or tuple.
    """
    desired = force(getattr(parent, children_slot, None))
    if desired is None:
        return None
    if not isinstance(desired, (list, tuple)):
        raise TypeError(
            f"Slot {children_slot!r} must hold a list or tuple, got {type(desired).__name__}"
        )

    parent_id = identity(parent)
    result = SyncResult()
    with scope.unit_of_work():
        actual = loader(scope, parent)
        desired_ids = {identity(child) for child in desired}
        to_delete = [child for child in actual if identity(child) not in desired_ids]

        for child in desired:
            result.saved.append(crud.save(scope, assoc(child, **{relation_key: parent_id})))
        for child in to_delete:
            crud.delete(scope, child)
            result.deleted.append(child)

    logger.debug(
        "children_synced",
        slot=children_slot,
        parent=parent_id,
        saved=len(result.saved),
        deleted=len(result.deleted),
    )
    return result


def _join_value(matches: list[Any], one_to_one: bool | None) -> Any:
    if one_to_one is True:
        return matches[0] if matches else None
    if one_to_one is False:
        return list(matches)
    if not matches:
        return None
    return matches[0] if len(matches) == 1 else list(matches)


def join(
    entities: Sequence[Any],
    subentities: Sequence[Any],
    slot: str,
    join_key: str,
    one_to_one: bool | None = None,
    key: Callable[[Any], Any] | None = None,
) -> list[Any]:
    """
    Attach ``subentities`` to ``entities`` by matching ``join_key``.

    Each subentity's ``join_key`` is matched against the entity's identity
    (or ``key(entity)``). ``one_to_one=True`` assigns the single match,
    ``False`` the list of matches. With ``None`` the shape is chosen per
    entity: one match gives a single value, several give a list, none gives
    ``None``.

    Returns new entities; the inputs are not modified.
    """
    groups: dict[Any, list[Any]] = {}
    for sub in subentities:
        groups.setdefault(getattr(sub, join_key, None), []).append(sub)

    keyfn = key or identity
    return [
        assoc(entity, **{slot: _join_value(groups.get(keyfn(entity), []), one_to_one)})
        for entity in entities
    ]


__all__ = [
    "Loader",
    "SyncResult",
    "sync_children",
    "join",
]
