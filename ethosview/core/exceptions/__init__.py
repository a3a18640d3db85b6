"""
Exception Module

Structured exception hierarchy for the EthosView caching and freshness core.
All exceptions are organized by theme for better maintainability.

Module Structure:
-----------------
- **base.py**: EthosViewError base class + ConfigurationError
- **cache.py**: Cache store and advanced cache exceptions
- **database.py**: Relational store exceptions
- **monitoring.py**: Alert manager and metrics sampling exceptions

Usage:
------
```python
from ethosview.core.exceptions import AlertNotFoundError, CacheKeyError
from ethosview.core.exceptions.database import DatabaseQueryError
```

Author: System Architect
Date: 2025-12-08
"""

# Base exception
from ethosview.core.exceptions.base import ConfigurationError, EthosViewError

# Cache exceptions
from ethosview.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
)

# Database exceptions
from ethosview.core.exceptions.database import (
    DatabaseConnectionError,
    DatabaseError,
    DatabaseQueryError,
)

# Monitoring exceptions
from ethosview.core.exceptions.monitoring import (
    AlertNotFoundError,
    MetricsCollectionError,
    MonitoringError,
)

__all__ = [
    # Base
    "EthosViewError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
    # Database
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseQueryError",
    # Monitoring
    "MonitoringError",
    "AlertNotFoundError",
    "MetricsCollectionError",
]
