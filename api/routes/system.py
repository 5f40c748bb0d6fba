"""
Health check and system status endpoints
"""

from fastapi import APIRouter, Depends, Request
from datetime import datetime
from api.dependencies import get_services
from core.config import settings
from ingestion.container import ETLServices
from schemas.api import HealthResponse, SystemStatusSnapshot
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["System"])


@router.get("/health", response_model=HealthResponse)
async def health_check(services: ETLServices = Depends(get_services)):
    """Liveness check: the process is up and its store is wired."""
    return HealthResponse(
        status="healthy",
        environment=settings.ENVIRONMENT,
        storage_backend=type(services.store).__name__,
        timestamp=datetime.utcnow()
    )


@router.get("/system/status", response_model=SystemStatusSnapshot)
async def system_status(request: Request, services: ETLServices = Depends(get_services)):
    """
    System status snapshot.

    Returns:
    - Job, data source and transformation counts (total and enabled)
    - Running, successful and failed run counts
    - Record counts aggregated over all runs
    - The most recent runs
    """
    request_id = getattr(request.state, "request_id", "-")
    snapshot = await services.status.snapshot()
    logger.info(
        f"[{request_id}] GET /system/status - status={snapshot.status.value}, "
        f"running={snapshot.running_job_count}"
    )
    return snapshot
