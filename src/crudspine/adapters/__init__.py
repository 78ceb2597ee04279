"""Connection adapters.

Modules
-------
sqlite          stdlib ``sqlite3`` wrapped in the ``Connection`` protocol
sqlalchemy      SQLAlchemy ``Session`` bridge and engine factory
"""

from crudspine.adapters.sqlalchemy import (
    CrudSession,
    SAConnectionBridge,
    create_crud_engine,
    crud_session_factory,
)
from crudspine.adapters.sqlite import SqliteConnection

__all__ = [
    "SqliteConnection",
    "SAConnectionBridge",
    "CrudSession",
    "create_crud_engine",
    "crud_session_factory",
]
