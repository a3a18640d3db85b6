"""
FastAPI dependencies.

The cache, alert manager and metrics registry are built once in the
application lifespan and stored on ``app.state``; routes receive them through
these providers. Tests can populate ``app.state`` directly or override the
providers with ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from ethosview.infrastructure.cache.advanced_cache import AdvancedCache
from ethosview.infrastructure.monitoring.alert_manager import AlertManager
from ethosview.infrastructure.monitoring.metrics_registry import MetricsRegistry


def _from_state(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(status_code=503, detail=f"{name} is not initialized")
    return component


def get_cache(request: Request) -> AdvancedCache:
    return _from_state(request, "cache")


def get_alert_manager(request: Request) -> AlertManager:
    return _from_state(request, "alert_manager")


def get_metrics(request: Request) -> MetricsRegistry:
    return _from_state(request, "metrics")


CacheDep = Annotated[AdvancedCache, Depends(get_cache)]
AlertManagerDep = Annotated[AlertManager, Depends(get_alert_manager)]
MetricsDep = Annotated[MetricsRegistry, Depends(get_metrics)]
