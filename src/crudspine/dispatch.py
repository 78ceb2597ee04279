"""Tagged dispatch tables for per-store behaviour.

Manifesto:
    Some tables need custom behaviour: a client-side id generator, a
    fetch that joins a view, a save that writes an audit row. Rather than
    subclassing the engine, callers register a handler under the table's
    store name and the engine looks it up at call time.

Features:
    - ``Dispatch`` table with a reserved ``DEFAULT`` entry
    - ``register(tag)`` decorator, ``unregister(tag)``
    - ``handler_for(tag)`` lookup with fallback to the default
    - Shipped tables: ``generate_id``, ``fetch_handlers``,
      ``save_handlers``, ``delete_handlers``

Examples:
    >>> @generate_id.register("api_keys")
    ... def _new_key(entity):
    ...     return secrets.token_hex(16)
    >>> generate_id("api_keys", entity)  # → 'f3c1…'
    >>> generate_id("orders", entity) is None
    True

Tags:
    dispatch, registry, extension, crudspine
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from crudspine.logging import get_logger

logger = get_logger(__name__)

DEFAULT = "__default__"


class Dispatch:
    """
    A table of handlers keyed by a runtime tag (usually a store name).

    Registry-driven: the engine never hard-codes per-table behaviour, it
    asks the table for ``handler_for(store)``.
    """

    def __init__(self, name: str, default: Callable[..., Any] | None = None):
        self.name = name
        self._handlers: dict[str, Callable[..., Any]] = {}
        if default is not None:
            self._handlers[DEFAULT] = default

    def register(self, tag: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a handler for ``tag``."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self._handlers[tag] = fn
            logger.debug("dispatch_registered", table=self.name, tag=tag)
            return fn

        return decorator

    def unregister(self, tag: str) -> None:
        """Remove the handler for ``tag``. The default entry cannot be removed."""
        if tag == DEFAULT:
            raise ValueError(f"Cannot unregister the default handler of {self.name}")
        self._handlers.pop(tag, None)

    def handler_for(self, tag: str) -> Callable[..., Any]:
        """Handler registered for ``tag``, else the default one."""
        handler = self._handlers.get(tag) or self._handlers.get(DEFAULT)
        if handler is None:
            raise LookupError(f"No handler for {tag!r} in dispatch table {self.name}")
        return handler

    def has_handler(self, tag: str) -> bool:
        """True when ``tag`` has its own (non-default) handler."""
        return tag != DEFAULT and tag in self._handlers

    def tags(self) -> list[str]:
        return sorted(t for t in self._handlers if t != DEFAULT)

    def __call__(self, tag: str, *args: Any, **kwargs: Any) -> Any:
        return self.handler_for(tag)(*args, **kwargs)

    def __repr__(self) -> str:
        return f"Dispatch({self.name!r}, tags={self.tags()})"


def _store_assigned_id(entity: Any) -> None:
    return None


# Client-side key generation; the default lets the store assign the key.
generate_id = Dispatch("generate_id", default=_store_assigned_id)

# Per-store overrides of the CRUD entry points. Defaults are installed by
# crudspine.crud when it is imported.
fetch_handlers = Dispatch("fetch")
save_handlers = Dispatch("save")
delete_handlers = Dispatch("delete")


__all__ = [
    "DEFAULT",
    "Dispatch",
    "generate_id",
    "fetch_handlers",
    "save_handlers",
    "delete_handlers",
]
