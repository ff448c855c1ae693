"""
Structured error types for tablepull.

Every failure the extraction engine can observe is one of a small set of
typed errors.  Each carries a category for routing, an ``ErrorContext``
describing *where* it happened (table, schema, key, shard) and an optional
chained cause.

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────────┐
        │                       TablepullError                          │
        │               (category, context, cause)                      │
        ├───────────────────────────────────────────────────────────────┤
        │                                                               │
        │  SourceConnectionError   DisconnectError   QueryError         │
        │  (CONNECTION)            (CONNECTION)      (QUERY)            │
        │                                                               │
        │  SchemaMismatchError     ConfigurationError                   │
        │  (SCHEMA)                (CONFIG)                             │
        └───────────────────────────────────────────────────────────────┘

Propagation:
    - ``QueryError`` for a single key is recovered inside the shard and
      recorded as a ``KeyFailure``; it never reaches the aggregator.
    - ``SourceConnectionError`` at worker start-up aborts that shard only
      and is counted in ``TableResult.shards_failed``.
    - ``SchemaMismatchError`` always surfaces to the caller.
    - ``ConfigurationError`` is raised before any shard is dispatched.
    - ``DisconnectError`` is reported by providers, never raised from
      ``close()``.

Guardrails:
    ❌ DON'T: Raise bare ``Exception`` from engine code
    ✅ DO: Raise the matching ``TablepullError`` subclass

    ❌ DON'T: Swallow the driver exception
    ✅ DO: Pass it as ``cause=`` so the chain survives

Usage:
    from tablepull.core.errors import QueryError

    try:
        conn.execute(text(sql))
    except SQLAlchemyError as e:
        raise QueryError("query failed", cause=e).with_context(table="HDR", key=2021)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and log routing."""

    CONNECTION = "CONNECTION"  # Open/close/authenticate against the source
    QUERY = "QUERY"  # A statement failed on an open connection
    SCHEMA = "SCHEMA"  # Shards disagree on column layout
    CONFIG = "CONFIG"  # Invalid settings or job definitions
    STORAGE = "STORAGE"  # Writing output artifacts
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Where an error happened.

    Only the fields that are set end up in :meth:`to_dict`, so the same
    context type serves job-, shard- and key-level errors.
    """

    table: str | None = None
    schema: str | None = None
    key: Any = None
    shard: int | None = None
    source: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Only the fields that are set, metadata merged in."""
        result: dict[str, Any] = {}
        for name in ("table", "schema", "key", "shard", "source"):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class TablepullError(Exception):
    """Base exception for all tablepull errors.

    Subclasses set ``default_category``; callers may override it per
    instance.  ``cause`` is chained onto ``__cause__`` so tracebacks show
    the driver error underneath.
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

    def with_context(self, **kwargs: Any) -> TablepullError:
        """
        Attach table, schema, key, shard or source and return self.

        Usage:
            raise QueryError("Failed").with_context(table="HDR", key=2021)
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Flat fields for ``logger.error(event, **err.to_dict())``."""
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
# CONNECTION ERRORS
# =============================================================================


class SourceConnectionError(TablepullError):
    """A connection to the source could not be opened or authenticated.

    Fatal to the shard (or job) that needed the connection, never to its
    siblings.
    """

    default_category = ErrorCategory.CONNECTION


class DisconnectError(TablepullError):
    """Closing a connection failed.

    Providers log and return this from ``close()`` instead of raising, so
    teardown is safe on an already-broken connection.
    """

    default_category = ErrorCategory.CONNECTION


# =============================================================================
# QUERY / SCHEMA ERRORS
# =============================================================================


class QueryError(TablepullError):
    """A single extraction query failed."""

    default_category = ErrorCategory.QUERY


class SchemaMismatchError(TablepullError):
    """Row sets of one job have incompatible column layouts."""

    default_category = ErrorCategory.SCHEMA

    def __init__(
        self,
        message: str,
        *,
        expected: tuple[str, ...] = (),
        actual: tuple[str, ...] = (),
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.expected = tuple(expected)
        self.actual = tuple(actual)

    @property
    def missing(self) -> tuple[str, ...]:
        """Columns present in ``expected`` but absent from ``actual``."""
        return tuple(c for c in self.expected if c not in self.actual)

    @property
    def unexpected(self) -> tuple[str, ...]:
        """Columns present in ``actual`` but absent from ``expected``."""
        return tuple(c for c in self.actual if c not in self.expected)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["expected"] = list(self.expected)
        result["actual"] = list(self.actual)
        return result


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(TablepullError):
    """Invalid worker bound, table name, job file or settings.

    Raised before any shard is dispatched.
    """

    default_category = ErrorCategory.CONFIG

    def __init__(self, message: str, *, key: str | None = None, value: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.key = key
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.key:
            result["key"] = self.key
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class PersistenceError(TablepullError):
    """Writing a delimited-text artifact failed."""

    default_category = ErrorCategory.STORAGE


def categorize_error(error: BaseException) -> ErrorCategory:
    """Category for any exception; OS errors count as storage failures."""
    if isinstance(error, TablepullError):
        return error.category
    if isinstance(error, OSError):
        return ErrorCategory.STORAGE
    return ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "TablepullError",
    "SourceConnectionError",
    "DisconnectError",
    "QueryError",
    "SchemaMismatchError",
    "ConfigurationError",
    "PersistenceError",
    "categorize_error",
]
