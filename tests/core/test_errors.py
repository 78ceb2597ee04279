"""Tests for ``crudspine.errors``."""

from __future__ import annotations

import pytest

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
    categorize_error,
)


class TestErrorContext:
    def test_to_dict_skips_unset(self):
        assert ErrorContext().to_dict() == {}
        ctx = ErrorContext(table="orders", sql="SELECT 1", metadata={"attempt": 2})
        assert ctx.to_dict() == {"table": "orders", "sql": "SELECT 1", "attempt": 2}


class TestCrudError:
    def test_defaults(self):
        error = CrudError("boom")
        assert error.message == "boom"
        assert error.category == ErrorCategory.INTERNAL
        assert error.cause is None

    def test_cause_is_chained(self):
        original = RuntimeError("disk full")
        error = StoreError("insert failed", cause=original)
        assert error.__cause__ is original
        assert error.to_dict()["cause"] == "disk full"

    def test_with_context(self):
        error = StoreError("failed").with_context(table="orders", operation="save", retry=False)
        assert error.context.table == "orders"
        assert error.context.operation == "save"
        assert error.context.metadata == {"retry": False}

    def test_to_dict(self):
        error = PreconditionFailed().with_context(table="orders")
        data = error.to_dict()
        assert data["error_type"] == "PreconditionFailed"
        assert data["category"] == "PRECONDITION"
        assert data["context"] == {"table": "orders"}

    def test_repr(self):
        assert repr(ConfigError("bad url")) == "ConfigError('bad url', category=CONFIG)"


class TestHierarchy:
    @pytest.mark.parametrize(
        ("error", "category"),
        [
            (PreconditionFailed(), ErrorCategory.PRECONDITION),
            (MissingPrimaryKey("no key", primary_keys=["id"]), ErrorCategory.PRECONDITION),
            (StoreError("x"), ErrorCategory.STORE),
            (ConfigError("x"), ErrorCategory.CONFIG),
            (UnsupportedCacheHandle(object(), ["get"]), ErrorCategory.CONFIG),
            (UnregisteredType("x"), ErrorCategory.CONFIG),
            (TransactionError("x"), ErrorCategory.TRANSACTION),
        ],
    )
    def test_categories(self, error, category):
        assert isinstance(error, CrudError)
        assert error.category == category

    def test_missing_primary_key_fields(self):
        assert MissingPrimaryKey("x", primary_keys=["a", "b"]).primary_keys == ("a", "b")

    def test_precondition_keeps_predicate(self):
        assert PreconditionFailed(where=True).where is True


class TestCategorize:
    def test_categorize(self):
        assert categorize_error(StoreError("x")) == ErrorCategory.STORE
        assert categorize_error(ConnectionError()) == ErrorCategory.STORE
        assert categorize_error(ValueError()) == ErrorCategory.PRECONDITION
        assert categorize_error(KeyError()) == ErrorCategory.UNKNOWN
