"""Tests for ``pgkv.errors``."""

from __future__ import annotations

import psycopg

from pgkv.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InitializationError,
    KVError,
    NotReadyError,
    categorize_error,
)


class TestKVError:
    def test_defaults(self):
        error = KVError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.cause is None
        assert str(error) == "Something went wrong"

    def test_cause_is_chained(self):
        cause = ConnectionError("DNS lookup failed")
        error = KVError("wrapped", cause=cause)
        assert error.cause is cause
        assert error.__cause__ is cause

    def test_with_context(self):
        error = KVError("failed").with_context(table="sessions", key="abc", attempt=2)
        assert error.context.table == "sessions"
        assert error.context.key == "abc"
        assert error.context.metadata == {"attempt": 2}

    def test_to_dict(self):
        error = InitializationError(
            "init failed", cause=OSError("no route"), context=ErrorContext(database="app")
        )
        assert error.to_dict() == {
            "error_type": "InitializationError",
            "message": "init failed",
            "category": "DATABASE",
            "retryable": True,
            "context": {"database": "app"},
            "cause": "no route",
        }

    def test_to_dict_without_context(self):
        assert "context" not in NotReadyError("x").to_dict()

    def test_repr(self):
        assert repr(ConfigError("bad url")) == "ConfigError('bad url', category=CONFIG)"


class TestSubclasses:
    def test_categories(self):
        assert InitializationError("x").category == ErrorCategory.DATABASE
        assert NotReadyError("x").category == ErrorCategory.STATE
        assert ConfigError("x").category == ErrorCategory.CONFIG

    def test_retryable_override(self):
        assert InitializationError("x", retryable=False).retryable is False

    def test_all_derive_from_base(self):
        for cls in (InitializationError, NotReadyError, ConfigError):
            assert issubclass(cls, KVError)


class TestUtilities:
    def test_categorize_error(self):
        assert categorize_error(ConfigError("x")) == ErrorCategory.CONFIG
        assert categorize_error(psycopg.OperationalError("down")) == ErrorCategory.DATABASE
        assert categorize_error(KeyError("k")) == ErrorCategory.UNKNOWN
