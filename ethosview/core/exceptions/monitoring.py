"""
Monitoring Exceptions

Exception types for the alert manager and metrics sampling.

ARCHITECTURAL DECISION:
----------------------
Invalid alert operations raise a descriptive, non-fatal error instead of
returning a sentinel, so API handlers can map them to a 404 and automation
can distinguish "already resolved" from a store outage.

Author: System Architect
Date: 2025-12-13
"""

from ethosview.core.exceptions.base import EthosViewError


class MonitoringError(EthosViewError):
    """
    Base exception for all monitoring operations.

    Example:
        try:
            await alert_manager.check_metrics()
        except MonitoringError as e:
            logger.error("Monitoring tick failed", error=e.to_dict())
    """

    pass


class AlertNotFoundError(MonitoringError):
    """
    Raised when resolving an alert that does not exist or is already resolved.

    Example:
        try:
            alert_manager.resolve_alert("cache_hit_rate_1733400000")
        except AlertNotFoundError:
            raise HTTPException(status_code=404, detail="alert not found")
    """

    pass


class MetricsCollectionError(MonitoringError):
    """
    Raised when a metrics sampler cannot produce a snapshot at all.

    Partial failures (one query out of several) are logged by the sampler and
    leave the affected field at zero instead.
    """

    pass
