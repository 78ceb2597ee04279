"""Tests for ``crudspine.dialect``."""

from __future__ import annotations

import sqlite3

import pytest

from crudspine.dialect import (
    Dialect,
    PostgreSQLDialect,
    SQLiteDialect,
    get_dialect,
    register_dialect,
)


class TestSQLiteDialect:
    def test_placeholders(self):
        d = SQLiteDialect()
        assert d.placeholder(0) == "?"
        assert d.placeholders(3) == "?, ?, ?"

    def test_quote_escapes_embedded_quotes(self):
        assert SQLiteDialect().quote('we"ird') == '"we""ird"'
        assert SQLiteDialect().quote("*") == "*"

    def test_returning_detected_from_library(self):
        expected = sqlite3.sqlite_version_info >= (3, 35, 0)
        assert SQLiteDialect().supports_returning is expected

    def test_returning_override(self):
        assert SQLiteDialect(returning=False).supports_returning is False

    def test_satisfies_protocol(self):
        assert isinstance(SQLiteDialect(), Dialect)


class TestPostgreSQLDialect:
    def test_placeholders(self):
        d = PostgreSQLDialect()
        assert d.placeholder(5) == "%s"
        assert d.placeholders(2) == "%s, %s"
        assert d.supports_returning is True
        assert d.boolean_true() == "TRUE"


class TestGetDialect:
    @pytest.mark.parametrize("name", ["sqlite", "SQLite", "postgresql", "postgres"])
    def test_known(self, name):
        assert get_dialect(name).name in ("sqlite", "postgresql")

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown dialect"):
            get_dialect("oracle")

    def test_register_custom(self):
        custom = SQLiteDialect(returning=False)
        register_dialect("sqlite-legacy", custom)
        assert get_dialect("SQLITE-LEGACY") is custom
