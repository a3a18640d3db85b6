"""
Database Exceptions

Exceptions raised by the relational store client.

Author: System Architect
Date: 2025-12-08
"""

from ethosview.core.exceptions.base import EthosViewError


class DatabaseError(EthosViewError):
    """Base exception for relational store errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """
    Raised when the engine cannot be created or the first ping fails.

    Common causes:
    - PostgreSQL is down or unreachable
    - Wrong DATABASE_URL / DB_* settings
    - SSL mode mismatch with the server
    """
    pass


class DatabaseQueryError(DatabaseError):
    """Raised when a statement fails or the client is used before connect()."""
    pass
