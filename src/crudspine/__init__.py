"""crudspine -- entity-relation data mapping over a relational store.

Manifesto:
    Typed records should be persisted and fetched without hand-written SQL
    for the common cases, while arbitrary predicates stay one mapping away.
    Writes never run without a condition, reads never scan a table by
    accident, and related entities are loaded only when someone reads them.

Architecture::

    Layer 1 -- Errors, logging, settings
        errors.py          CrudError hierarchy (PreconditionFailed, StoreError ...)
        logging.py         structlog configuration + LogContext
        settings.py        CrudSettings (pydantic-settings, CRUDSPINE_ env)

    Layer 2 -- Statements
        predicate.py       Predicate tree, generate_where, is_secure guard
        query.py           Select / Insert / Update / Delete + render
        dialect.py         SQLite / PostgreSQL dialects

    Layer 3 -- Entities
        entity.py          Entity base class, primary_key / identity / store
        registry.py        Record constructors + relation resolvers
        dispatch.py        Per-store dispatch tables (generate_id, fetch ...)
        translate.py       Entity ⇄ row translation

    Layer 4 -- Store access
        protocols.py       Connection, Catalog, Executor protocols
        adapters/          sqlite3 adapter, SQLAlchemy session bridge
        catalog.py         Table metadata (PRAGMA / inspector, memoized)
        cache.py           Write-invalidated query cache
        executor.py        SqlExecutor
        scope.py           Scope + transactions
        connection.py      create_scope() factory

    Layer 5 -- Engine
        crud.py            fetch / save / update / delete / insert_multi
        pull.py            Lazy relation slots + pull queries
        relations.py       sync_children + join

Example::

    from crudspine import Entity, create_scope, crud

    class Order(Entity):
        id: int | None = None
        status: str | None = None

    scope = create_scope()
    scope.conn.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, status TEXT)")
    order = crud.save(scope, Order(status="new"))
    crud.fetch(scope, Order, {"status": "new"})
"""

from crudspine import crud
from crudspine.cache import CacheBackend, InMemoryCache, QueryCache, query_signature
from crudspine.connection import create_scope
from crudspine.crud import (
    delete,
    fetch,
    fetch_by,
    fetch_one,
    insert_multi,
    query,
    save,
    update,
    update_entity,
)
from crudspine.dispatch import (
    DEFAULT,
    Dispatch,
    delete_handlers,
    fetch_handlers,
    generate_id,
    save_handlers,
)
from crudspine.entity import Entity, assoc, identity, primary_key, slot, store
from crudspine.errors import (
    ConfigError,
    CrudError,
    ErrorCategory,
    ErrorContext,
    MissingPrimaryKey,
    PreconditionFailed,
    StoreError,
    TransactionError,
    UnregisteredType,
    UnsupportedCacheHandle,
)
from crudspine.predicate import (
    TRUE,
    And,
    Comparison,
    In,
    Or,
    Raw,
    generate_where,
    is_secure,
    require_secure,
)
from crudspine.pull import Lazy, pull, resolve, subpulls
from crudspine.registry import (
    constructor_for,
    empty_record,
    register_record,
    register_resolver,
    renew,
    resolvers_for,
    unregister_resolver,
)
from crudspine.relations import SyncResult, join, sync_children
from crudspine.scope import ManualTransaction, Scope
from crudspine.settings import CrudSettings, get_settings
from crudspine.translate import from_row, to_row

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # engine
    "crud",
    "fetch",
    "fetch_one",
    "fetch_by",
    "save",
    "update",
    "update_entity",
    "delete",
    "insert_multi",
    "query",
    # entities
    "Entity",
    "slot",
    "assoc",
    "identity",
    "primary_key",
    "store",
    "register_record",
    "constructor_for",
    "empty_record",
    "renew",
    "register_resolver",
    "unregister_resolver",
    "resolvers_for",
    # dispatch
    "DEFAULT",
    "Dispatch",
    "generate_id",
    "fetch_handlers",
    "save_handlers",
    "delete_handlers",
    # predicates
    "TRUE",
    "Comparison",
    "In",
    "And",
    "Or",
    "Raw",
    "generate_where",
    "is_secure",
    "require_secure",
    # pull / relations
    "Lazy",
    "pull",
    "resolve",
    "subpulls",
    "SyncResult",
    "sync_children",
    "join",
    # translation
    "to_row",
    "from_row",
    # scope / cache / settings
    "Scope",
    "ManualTransaction",
    "create_scope",
    "CacheBackend",
    "InMemoryCache",
    "QueryCache",
    "query_signature",
    "CrudSettings",
    "get_settings",
    # errors
    "CrudError",
    "ErrorCategory",
    "ErrorContext",
    "PreconditionFailed",
    "MissingPrimaryKey",
    "StoreError",
    "ConfigError",
    "UnsupportedCacheHandle",
    "UnregisteredType",
    "TransactionError",
]
