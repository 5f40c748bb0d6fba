"""
Job endpoints: definitions, execution and run history
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from typing import List, Optional
from api.dependencies import get_services
from ingestion.container import ETLServices
from schemas.api import JobRunResult, BatchExecutionRequest, BatchExecutionResult, ToggleResult
from schemas.entities import Job, JobCreate, JobRun
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["Jobs"])


# ============================================================================
# Runs (declared before /{job_id} so "runs" is never taken for a job id)
# ============================================================================

@router.get("/runs", response_model=List[JobRun])
async def list_job_runs(
    job_id: Optional[str] = Query(None, description="Only runs of this job"),
    services: ETLServices = Depends(get_services)
):
    """Job runs, newest first."""
    return await services.executor.list_job_runs(job_id)


@router.get("/runs/{run_id}", response_model=JobRun)
async def get_job_run(run_id: str, services: ETLServices = Depends(get_services)):
    """A single job run with its logs."""
    return await services.executor.get_job_run(run_id)


@router.post("/runs/{run_id}/cancel", response_model=JobRun)
async def cancel_job_run(run_id: str, request: Request, services: ETLServices = Depends(get_services)):
    request_id = getattr(request.state, "request_id", "-")
    logger.info(f"[{request_id}] POST /jobs/runs/{run_id}/cancel")
    return await services.executor.cancel_run(run_id)


@router.post("/batch-execute", response_model=BatchExecutionResult)
async def batch_execute(
    payload: BatchExecutionRequest,
    request: Request,
    services: ETLServices = Depends(get_services)
):
    """
    Execute several jobs.

    A failing job never stops the others; every requested id gets an entry
    in `results`, in request order.
    """
    request_id = getattr(request.state, "request_id", "-")
    logger.info(f"[{request_id}] POST /jobs/batch-execute - {len(payload.job_ids)} jobs")
    return await services.batch.execute_batch_jobs(payload.job_ids)


# ============================================================================
# Definitions
# ============================================================================

@router.post("", response_model=Job, status_code=201)
async def create_job(payload: JobCreate, services: ETLServices = Depends(get_services)):
    return await services.jobs.create(payload)


@router.get("", response_model=List[Job])
async def list_jobs(services: ETLServices = Depends(get_services)):
    return await services.jobs.list()


@router.get("/{job_id}", response_model=Job)
async def get_job(job_id: str, services: ETLServices = Depends(get_services)):
    return await services.jobs.get(job_id)


@router.patch("/{job_id}/enable", response_model=Job)
async def enable_job(job_id: str, services: ETLServices = Depends(get_services)):
    """Enable a job. Unknown ids are accepted and reported as not updated."""
    job = await services.jobs.enable(job_id)
    if job is None:
        return JSONResponse(content=ToggleResult(id=job_id).model_dump())
    return job


@router.patch("/{job_id}/disable", response_model=Job)
async def disable_job(job_id: str, services: ETLServices = Depends(get_services)):
    job = await services.jobs.disable(job_id)
    if job is None:
        return JSONResponse(content=ToggleResult(id=job_id).model_dump())
    return job


@router.delete("/{job_id}")
async def delete_job(job_id: str, services: ETLServices = Depends(get_services)):
    """Delete a job. Unknown ids are accepted and reported as not deleted."""
    deleted = await services.jobs.delete(job_id)
    return {"id": job_id, "deleted": deleted}


@router.post("/{job_id}/execute", response_model=JobRunResult)
async def execute_job(job_id: str, request: Request, services: ETLServices = Depends(get_services)):
    """
    Run a job to completion.

    Unknown jobs answer 404 and jobs without sources 400; in both cases no
    run is recorded. A run that fails still answers 200 with success=false.
    """
    request_id = getattr(request.state, "request_id", "-")
    logger.info(f"[{request_id}] POST /jobs/{job_id}/execute")
    result = await services.executor.execute_job(job_id)
    logger.info(f"[{request_id}] Job {job_id} finished with status {result.status.value}")
    return result
