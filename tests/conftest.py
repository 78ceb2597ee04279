"""
Shared pytest fixtures and configuration for crudspine tests.

This module provides:
- Automatic unit / integration markers based on test location
- In-memory SQLite scopes with the sample schema
- Dispatch cleanup so per-store handlers never leak between tests

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments:

    def test_save(scope):
        crud.save(scope, Order(customer_id=1))
"""

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Ensure crudspine and the support package are importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from crudspine.adapters.sqlite import SqliteConnection
from crudspine.cache import InMemoryCache
from crudspine.dialect import SQLiteDialect
from crudspine.dispatch import delete_handlers, fetch_handlers, generate_id, save_handlers
from crudspine.scope import Scope
from crudspine.settings import get_settings

from _support import RecordingConnection
from _support.entities import SCHEMA


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Registry Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_dispatch_tables() -> Generator[None, None, None]:
    """
    Drop per-store handlers registered during a test.

    Default entries are left alone; only tags added by the test go away.
    """
    tables = (generate_id, fetch_handlers, save_handlers, delete_handlers)
    before = {table.name: set(table.tags()) for table in tables}
    yield
    for table in tables:
        for tag in set(table.tags()) - before[table.name]:
            table.unregister(tag)


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Store Fixtures
# =============================================================================


def _sqlite_with_schema() -> SqliteConnection:
    conn = SqliteConnection(":memory:")
    conn.raw.executescript(SCHEMA)
    return conn


@pytest.fixture
def conn() -> Generator[SqliteConnection, None, None]:
    """In-memory SQLite connection with the sample schema."""
    connection = _sqlite_with_schema()
    yield connection
    connection.close()


@pytest.fixture
def scope(conn: SqliteConnection) -> Scope:
    """Scope over ``conn`` with the default SQLite dialect and no cache."""
    return Scope(conn)


@pytest.fixture
def legacy_scope(conn: SqliteConnection) -> Scope:
    """Scope whose dialect reports no RETURNING support."""
    return Scope(conn, dialect=SQLiteDialect(returning=False))


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache(max_size=100)


@pytest.fixture
def cached_scope(conn: SqliteConnection, cache: InMemoryCache) -> Scope:
    """Scope with an in-memory query cache attached."""
    return Scope(conn, cache=cache)


@pytest.fixture
def recorder() -> Generator[RecordingConnection, None, None]:
    """Statement-recording connection over a fresh schema."""
    recording = RecordingConnection(_sqlite_with_schema())
    yield recording
    recording.close()


@pytest.fixture
def recorded_scope(recorder: RecordingConnection) -> Scope:
    return Scope(recorder)
