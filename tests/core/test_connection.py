"""Tests for ``crudspine.connection``: URL parsing and scope creation."""

from __future__ import annotations

import pytest

from crudspine.adapters.sqlite import SqliteConnection
from crudspine.cache import InMemoryCache, QueryCache
from crudspine.catalog import CachedCatalog, SQLiteCatalog
from crudspine.connection import ConnectionInfo, connect, create_scope, parse_url
from crudspine.dialect import SQLiteDialect
from crudspine.errors import ConfigError, UnsupportedCacheHandle
from crudspine.settings import CrudSettings


class TestParseUrl:
    @pytest.mark.parametrize("url", [None, "", "memory", ":memory:", "sqlite://", "sqlite:///:memory:"])
    def test_memory(self, url):
        assert parse_url(url) == ("memory", ":memory:")

    def test_sqlite_url(self):
        assert parse_url("sqlite:///data/orders.db") == ("sqlite", "data/orders.db")

    def test_file_path(self):
        assert parse_url("./orders.db") == ("file", "./orders.db")

    @pytest.mark.parametrize(
        "url",
        [
            "postgresql://app:pw@localhost/app",
            "postgres://app@db/app",
            "postgresql+psycopg2://app@db/app",
        ],
    )
    def test_postgres(self, url):
        assert parse_url(url) == ("postgresql", url)

    def test_unknown_scheme(self):
        with pytest.raises(ConfigError) as exc_info:
            parse_url("mysql://root@localhost/app")
        assert "mysql" in str(exc_info.value)
        assert exc_info.value.context.metadata["url"] == "mysql://root@localhost/app"


class TestConnect:
    def test_memory(self):
        conn, info = connect("memory")
        assert isinstance(conn, SqliteConnection)
        assert info == ConnectionInfo("sqlite", False, ":memory:")
        assert info.is_sqlite and not info.is_postgres
        conn.close()

    def test_file_creates_parent_directory(self, tmp_path):
        target = tmp_path / "nested" / "orders.db"
        conn, info = connect(str(target))
        assert target.parent.exists()
        assert info.persistent is True
        assert info.resolved_path == str(target.resolve())
        conn.close()


class TestCreateScope:
    def test_defaults(self):
        scope = create_scope(settings=CrudSettings(_env_file=None))
        assert isinstance(scope.dialect, SQLiteDialect)
        assert isinstance(scope.catalog, CachedCatalog)
        assert scope.cache.enabled is False
        scope.close()

    def test_catalog_memoization_can_be_disabled(self):
        settings = CrudSettings(_env_file=None, catalog_memoize=False)
        scope = create_scope(settings=settings)
        assert isinstance(scope.catalog, SQLiteCatalog)
        scope.close()

    def test_cache_from_settings(self):
        settings = CrudSettings(_env_file=None, cache_enabled=True, cache_max_size=5)
        scope = create_scope(settings=settings)
        assert scope.cache.enabled
        assert isinstance(scope.cache.handle, InMemoryCache)
        scope.close()

    def test_explicit_cache_handle(self):
        handle = InMemoryCache()
        scope = create_scope("memory", settings=CrudSettings(_env_file=None), cache=handle)
        assert scope.cache.handle is handle
        scope.close()

    def test_prepared_query_cache(self):
        prepared = QueryCache(InMemoryCache())
        scope = create_scope(settings=CrudSettings(_env_file=None), cache=prepared)
        assert scope.cache is prepared
        scope.close()

    def test_bad_cache_handle_fails_fast(self):
        with pytest.raises(UnsupportedCacheHandle):
            create_scope(settings=CrudSettings(_env_file=None), cache=object())

    def test_url_from_settings(self, tmp_path):
        path = tmp_path / "settings.db"
        scope = create_scope(settings=CrudSettings(_env_file=None, database_url=str(path)))
        scope.conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        scope.close()
        assert path.exists()
