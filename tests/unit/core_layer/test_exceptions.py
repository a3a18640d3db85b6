"""
Unit Tests for the Exception Hierarchy

Tests inheritance, serialization and wrapping helpers.
"""

import pytest

from ethosview.core.exceptions import (
    AlertNotFoundError,
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    ConfigurationError,
    DatabaseConnectionError,
    DatabaseError,
    DatabaseQueryError,
    EthosViewError,
    MetricsCollectionError,
    MonitoringError,
)


@pytest.mark.unit
class TestExceptionHierarchy:
    """Test that every error is catchable by its family and the base."""

    @pytest.mark.parametrize(
        "error_cls, family",
        [
            (CacheConnectionError, CacheError),
            (CacheKeyError, CacheError),
            (CacheSerializationError, CacheError),
            (DatabaseConnectionError, DatabaseError),
            (DatabaseQueryError, DatabaseError),
            (AlertNotFoundError, MonitoringError),
            (MetricsCollectionError, MonitoringError),
        ],
    )
    def test_family(self, error_cls, family):
        assert issubclass(error_cls, family)
        assert issubclass(error_cls, EthosViewError)

    def test_configuration_error_is_base_error(self):
        assert issubclass(ConfigurationError, EthosViewError)


@pytest.mark.unit
class TestEthosViewError:
    """Test base error behaviour."""

    def test_to_dict(self):
        error = CacheKeyError("Redis GET failed", correlation_id="req-1", details={"key": "k"})

        assert error.to_dict() == {
            "error_type": "CacheKeyError",
            "message": "Redis GET failed",
            "correlation_id": "req-1",
            "details": {"key": "k"},
        }

    def test_details_are_copied(self):
        details = {"key": "k"}
        error = CacheKeyError("boom", details=details)

        error.with_context(extra=1)

        assert details == {"key": "k"}
        assert error.details == {"key": "k", "extra": 1}

    def test_with_suggestion_chains(self):
        error = DatabaseConnectionError("refused").with_suggestion("check DATABASE_URL")

        assert isinstance(error, DatabaseConnectionError)
        assert error.details["suggestion"] == "check DATABASE_URL"

    def test_repr_includes_details(self):
        error = AlertNotFoundError("missing", details={"alert_id": "x"})

        assert "AlertNotFoundError" in repr(error)
        assert "alert_id" in repr(error)

    def test_from_exception_wraps_original(self):
        original = OSError("connection refused")

        error = DatabaseConnectionError.from_exception(original, host="db")

        assert isinstance(error, DatabaseConnectionError)
        assert error.message == "connection refused"
        assert error.details["original_error"] == "OSError"
        assert error.details["host"] == "db"

    def test_from_exception_custom_message(self):
        error = MetricsCollectionError.from_exception(ValueError("x"), message="sampling failed")

        assert str(error) == "sampling failed"
