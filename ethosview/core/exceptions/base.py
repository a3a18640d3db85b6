"""
Base Exception Class

EthosViewError is the root of every error raised by the cache, warmer,
alert manager and their store clients, plus ConfigurationError for settings
that fail validation at startup.

The API layer renders any EthosViewError with ``to_dict()``; store outages
(CacheError, DatabaseError) become 503 responses, everything else 500.

Author: System Architect
Date: 2025-12-08
"""

from typing import Any


class EthosViewError(Exception):
    """
    Root of the EthosView error tree.

    Attributes:
        message: Human readable summary
        correlation_id: X-Request-ID of the request being served, if any
        details: Structured fields for logs and API bodies (key, query,
            host, suggestion, original_error, ...)

    Example:
        raise CacheKeyError(
            "Redis SET failed: connection reset",
            details={"key": "ethosview:co:1"},
        )
    """

    def __init__(
        self, message: str, correlation_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.correlation_id = correlation_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Body of the JSON error response."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "correlation_id": self.correlation_id,
            "details": self.details,
        }

    def with_suggestion(self, suggestion: str) -> "EthosViewError":
        """
        Attach an operator hint, e.g. which setting to check after a refused connection.

        Returns:
            Self (for ``raise ... .with_suggestion(...)``)
        """
        self.details["suggestion"] = suggestion
        return self

    def with_context(self, **context) -> "EthosViewError":
        """Merge extra fields into ``details``; returns self."""
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        correlation_str = f", correlation_id='{self.correlation_id}'" if self.correlation_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{correlation_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        correlation_id: str | None = None,
        **details
    ) -> "EthosViewError":
        """
        Wrap a driver or library exception (redis, SQLAlchemy, psutil, pydantic).

        The original class name and message are kept under ``original_error``
        and ``original_message``.

        Example:
            >>> try:
            ...     await engine.connect()
            ... except OSError as e:
            ...     raise DatabaseConnectionError.from_exception(e, host="db", database="ethosview")
        """
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(message or str(exc), correlation_id=correlation_id, details=error_details)


class ConfigurationError(EthosViewError):
    """Raised by get_settings() / reload_settings() when the environment does not validate."""
    pass
