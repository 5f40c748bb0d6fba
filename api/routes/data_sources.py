"""
Data source endpoints: catalog and connection testing
"""

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from api.dependencies import get_services
from ingestion.container import ETLServices
from schemas.api import ConnectionTestResult, ExtractionTestRequest, ToggleResult
from schemas.entities import DataSource, DataSourceCreate
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/data-sources", tags=["Data Sources"])


class BatchConnectionTestRequest(BaseModel):
    """Ids to probe; all registered sources when omitted."""
    source_ids: Optional[List[str]] = Field(None, alias="sourceIds")

    class Config:
        populate_by_name = True


@router.post("/batch-test-connection", response_model=Dict[str, ConnectionTestResult])
async def batch_test_connection(
    request: Request,
    payload: Optional[BatchConnectionTestRequest] = Body(None),
    services: ETLServices = Depends(get_services)
):
    request_id = getattr(request.state, "request_id", "-")

    if payload is None or payload.source_ids is None:
        sources = await services.data_sources.list()
    else:
        sources = [await services.data_sources.get(source_id) for source_id in payload.source_ids]

    logger.info(f"[{request_id}] POST /data-sources/batch-test-connection - {len(sources)} sources")
    return await services.tester.batch_test_connections(sources)


@router.post("", response_model=DataSource, status_code=201)
async def create_data_source(payload: DataSourceCreate, services: ETLServices = Depends(get_services)):
    return await services.data_sources.create(payload)


@router.get("", response_model=List[DataSource])
async def list_data_sources(services: ETLServices = Depends(get_services)):
    return await services.data_sources.list()


@router.get("/{source_id}", response_model=DataSource)
async def get_data_source(source_id: str, services: ETLServices = Depends(get_services)):
    return await services.data_sources.get(source_id)


@router.patch("/{source_id}/enable", response_model=DataSource)
async def enable_data_source(source_id: str, services: ETLServices = Depends(get_services)):
    source = await services.data_sources.enable(source_id)
    if source is None:
        return JSONResponse(content=ToggleResult(id=source_id).model_dump())
    return source


@router.patch("/{source_id}/disable", response_model=DataSource)
async def disable_data_source(source_id: str, services: ETLServices = Depends(get_services)):
    source = await services.data_sources.disable(source_id)
    if source is None:
        return JSONResponse(content=ToggleResult(id=source_id).model_dump())
    return source


@router.delete("/{source_id}")
async def delete_data_source(source_id: str, services: ETLServices = Depends(get_services)):
    deleted = await services.data_sources.delete(source_id)
    return {"id": source_id, "deleted": deleted}


@router.post("/{source_id}/test-connection", response_model=ConnectionTestResult)
async def test_connection(source_id: str, request: Request, services: ETLServices = Depends(get_services)):
    """
    Probe a data source.

    Connection problems are reported in the body with success=false, not as
    an HTTP error.
    """
    request_id = getattr(request.state, "request_id", "-")
    source = await services.data_sources.get(source_id)
    logger.info(f"[{request_id}] POST /data-sources/{source_id}/test-connection ({source.name})")
    return await services.tester.test_connection(source)


@router.post("/{source_id}/test-extraction", response_model=ConnectionTestResult)
async def test_extraction(
    source_id: str,
    request: Request,
    payload: Optional[ExtractionTestRequest] = Body(None),
    services: ETLServices = Depends(get_services)
):
    """Probe a data source and return a small sample of its records."""
    request_id = getattr(request.state, "request_id", "-")
    source = await services.data_sources.get(source_id)
    limit = payload.limit if payload else None
    logger.info(f"[{request_id}] POST /data-sources/{source_id}/test-extraction - limit={limit}")
    return await services.tester.test_extraction(source, limit)
