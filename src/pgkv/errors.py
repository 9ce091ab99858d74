"""
Structured error types for pgkv.

The store exposes a deliberately small failure surface. Provisioning
problems (database creation, connecting, table creation) are normalized into
a single :class:`InitializationError`, while point operations and cursor
fetches let the driver's own ``psycopg.Error`` subclasses propagate
unchanged. Everything raised by pgkv itself derives from :class:`KVError`
and carries:

- **Category:** What kind of error (database, config, state)
- **Retryable:** Whether repeating the call may succeed
- **Context:** Database, table and key the error relates to
- **Cause:** Chained underlying exception for root cause analysis

Architecture:
    ::

        ┌──────────────────────────────────────────────────────┐
        │                       KVError                         │
        │  (category, retryable, context, cause)                │
        ├──────────────────────────────────────────────────────┤
        │  InitializationError   NotReadyError    ConfigError   │
        │  (DATABASE)            (STATE)          (CONFIG)      │
        └──────────────────────────────────────────────────────┘

Examples:
    Wrapping a provisioning failure:

    >>> try:
    ...     raise ConnectionRefusedError("connection refused")
    ... except ConnectionRefusedError as e:
    ...     error = InitializationError("Error initializing store", cause=e)
    >>> error.cause
    ConnectionRefusedError('connection refused')

    Adding context:

    >>> error = NotReadyError("store is not initialized").with_context(table="sessions")
    >>> error.context.table
    'sessions'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import psycopg


class ErrorCategory(str, Enum):
    """Error categories used for classification and routing."""

    DATABASE = "DATABASE"
    CONFIG = "CONFIG"
    STATE = "STATE"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured context attached to a :class:`KVError`.

    Attributes:
        database: Target database name, when known
        table: Table the store owns
        key: Key involved in the failing call
        metadata: Additional key-value pairs
    """

    database: str | None = None
    table: str | None = None
    key: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["database", "table", "key"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class KVError(Exception):
    """
    Base exception for all pgkv errors.

    Subclasses pick a ``default_category`` and ``default_retryable``; both can
    be overridden per instance. When ``cause`` is given it is also chained as
    ``__cause__`` so tracebacks show the original failure.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> KVError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NotReadyError("not initialized").with_context(table="sessions")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class InitializationError(KVError):
    """Provisioning the database, connection or table failed.

    A failed initialization can be attempted again since every provisioning
    step is idempotent.
    """

    default_category = ErrorCategory.DATABASE
    default_retryable = True


class NotReadyError(KVError):
    """An operation was called before ``initialize()`` succeeded or after ``close()``."""

    default_category = ErrorCategory.STATE
    default_retryable = False


class ConfigError(KVError):
    """Configuration error (bad connection string or settings)."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


def categorize_error(error: BaseException) -> ErrorCategory:
    """Category of any error raised by a store call (KVError or driver error)."""
    if isinstance(error, KVError):
        return error.category
    if isinstance(error, psycopg.Error):
        return ErrorCategory.DATABASE
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "KVError",
    "InitializationError",
    "NotReadyError",
    "ConfigError",
    "categorize_error",
]
