"""
Monitoring Routes

Alert feed, Prometheus exposition and persisted snapshot history.
"""

from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel

from ethosview.application.api.dependencies import AlertManagerDep, MetricsDep
from ethosview.core.exceptions import AlertNotFoundError
from ethosview.infrastructure.monitoring.models import Alert, MonitoringSnapshot

router = APIRouter(tags=["Monitoring"])


class AlertListResponse(BaseModel):
    alerts: list[Alert]
    count: int
    active_only: bool


class MonitoringHistoryResponse(BaseModel):
    snapshots: list[MonitoringSnapshot]
    count: int


@router.get("/alerts", response_model=AlertListResponse)
async def list_alerts(
    alert_manager: AlertManagerDep,
    all: bool = Query(default=False, description="Include resolved alerts still within retention"),
):
    """Active alerts, or every retained alert with ``?all=true``."""
    alerts = alert_manager.get_all_alerts() if all else alert_manager.get_active_alerts()
    return AlertListResponse(alerts=alerts, count=len(alerts), active_only=not all)


@router.post("/alerts/{alert_id}/resolve", response_model=Alert)
async def resolve_alert(alert_id: str, alert_manager: AlertManagerDep):
    try:
        return alert_manager.resolve_alert(alert_id)
    except AlertNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from e


@router.get("/metrics")
async def prometheus_metrics(metrics: MetricsDep):
    """Prometheus text exposition."""
    return Response(content=metrics.render(), media_type=metrics.content_type)


@router.get("/monitoring/history", response_model=MonitoringHistoryResponse)
async def monitoring_history(
    alert_manager: AlertManagerDep,
    limit: int = Query(default=60, ge=1, le=1440),
):
    """Persisted monitoring snapshots, newest first."""
    snapshots = await alert_manager.get_metrics_history(limit)
    return MonitoringHistoryResponse(snapshots=snapshots, count=len(snapshots))
