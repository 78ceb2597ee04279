"""
Structured error types for crudspine.

Every failure raised by the engine is a :class:`CrudError` carrying a
category, a structured :class:`ErrorContext` (table, operation, SQL) and
the chained underlying exception, so that callers can log, route and
inspect failures without parsing messages.

Manifesto:
    - **Fail loudly on writes:** destructive operations never degrade to
      a silent no-op. A missing or always-true predicate is an error.
    - **Rich context:** errors carry the table, operation and rendered SQL.
    - **Error chaining:** driver exceptions are preserved as ``cause``.
    - **Log, then re-raise:** the engine logs store failures with their
      query context and propagates them unchanged.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                          CrudError                              │
        │              (category, context, cause)                         │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  PreconditionFailed   MissingPrimaryKey   StoreError            │
        │  (PRECONDITION)       (PRECONDITION)      (STORE)               │
        │                                                                 │
        │  UnsupportedCacheHandle   ConfigError     TransactionError      │
        │  (CONFIG)                 (CONFIG)        (TRANSACTION)         │
        │                                                                 │
        │  UnregisteredType                                               │
        │  (CONFIG)                                                       │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = PreconditionFailed("Query aborted").with_context(table="orders")
    >>> error.context.table
    'orders'
    >>> error.to_dict()["category"]
    'PRECONDITION'

Tags:
    error-handling, exception-hierarchy, error-context, crudspine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    PRECONDITION = "PRECONDITION"  # Guard rejected the call before any I/O
    STORE = "STORE"                # Executor / driver failures
    CONFIG = "CONFIG"              # Bad settings, cache handle, registry
    TRANSACTION = "TRANSACTION"    # Transaction nesting violations
    INTERNAL = "INTERNAL"          # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"            # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to a :class:`CrudError`.

    Only fields that are set end up in :meth:`to_dict`, which keeps log
    lines short.

    Attributes:
        table: Table the failing operation targeted
        operation: Engine operation (``fetch``, ``save``, ``delete`` ...)
        sql: Rendered SQL statement, when one was produced
        params: Bound parameters of ``sql``
        metadata: Additional key-value pairs
    """

    table: str | None = None
    operation: str | None = None
    sql: str | None = None
    params: tuple[Any, ...] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ("table", "operation", "sql", "params"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class CrudError(Exception):
    """
    Base exception for all crudspine errors.

    Subclasses set ``default_category``; the constructor accepts an
    explicit category, a prepared :class:`ErrorContext` and the underlying
    ``cause`` (also chained as ``__cause__``).

    Examples:
        >>> try:
        ...     raise ConnectionError("socket closed")
        ... except ConnectionError as e:
        ...     error = StoreError("fetch failed", cause=e)
        >>> error.cause
        ConnectionError('socket closed')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CrudError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StoreError("insert failed").with_context(
                table="orders", operation="save"
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# PRECONDITION ERRORS
# =============================================================================


class PreconditionFailed(CrudError):
    """
    An UPDATE or DELETE was attempted without a usable predicate.

    Raised before any side effect (cache invalidation included) when the
    predicate is absent, the literal ``TRUE``, or an empty conjunction.
    Executing such a statement would touch every row of the table.
    """

    default_category = ErrorCategory.PRECONDITION

    def __init__(self, message: str | None = None, *, where: Any = None, **kwargs: Any):
        super().__init__(
            message
            or (
                "Query aborted for security reasons. The given query has no "
                "WHERE condition or its condition always evaluates to true, "
                "this could make a mess in the target table."
            ),
            **kwargs,
        )
        self.where = where


class MissingPrimaryKey(CrudError):
    """Update by primary key on an entity (or table) lacking primary-key values."""

    default_category = ErrorCategory.PRECONDITION

    def __init__(
        self,
        message: str,
        *,
        primary_keys: list[str] | tuple[str, ...] = (),
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.primary_keys = tuple(primary_keys)


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreError(CrudError):
    """Failure reported by the underlying relational executor."""

    default_category = ErrorCategory.STORE


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(CrudError):
    """Invalid configuration (settings, database URL, ...)."""

    default_category = ErrorCategory.CONFIG


class UnsupportedCacheHandle(ConfigError):
    """A cache handle was supplied that lacks the read/write contract."""

    def __init__(self, handle: Any, missing: list[str] | tuple[str, ...]):
        super().__init__(
            f"Cache handle {type(handle).__name__} does not support "
            f"the cache contract (missing: {', '.join(missing)})"
        )
        self.handle = handle
        self.missing = tuple(missing)


class UnregisteredType(ConfigError):
    """No record constructor is registered for a type."""


class TransactionError(CrudError):
    """Manual and automatic transaction management were mixed on one scope."""

    default_category = ErrorCategory.TRANSACTION


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, CrudError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.STORE
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.PRECONDITION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "CrudError",
    "PreconditionFailed",
    "MissingPrimaryKey",
    "StoreError",
    "ConfigError",
    "UnsupportedCacheHandle",
    "UnregisteredType",
    "TransactionError",
    "categorize_error",
]
