"""
Alert endpoints
"""

from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from api.dependencies import get_services
from ingestion.container import ETLServices
from models.base import AlertCategory, AlertSeverity
from schemas.entities import Alert

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("", response_model=List[Alert])
async def list_alerts(
    category: Optional[AlertCategory] = Query(None, description="Filter by category"),
    severity: Optional[AlertSeverity] = Query(None, description="Filter by severity"),
    acknowledged: Optional[bool] = Query(None, description="Filter by acknowledgement"),
    services: ETLServices = Depends(get_services)
):
    """Alerts, newest first."""
    return await services.alerts.list_alerts(category=category, severity=severity, acknowledged=acknowledged)


@router.post("/{alert_id}/acknowledge", response_model=Alert)
async def acknowledge_alert(alert_id: str, services: ETLServices = Depends(get_services)):
    return await services.alerts.acknowledge(alert_id)


@router.delete("/{alert_id}")
async def delete_alert(alert_id: str, services: ETLServices = Depends(get_services)):
    deleted = await services.alerts.delete_alert(alert_id)
    return {"id": alert_id, "deleted": deleted}
