"""
Execute several jobs and reconcile their outcomes
"""

import asyncio
import logging
from typing import List, Optional
from core.config import settings
from core.exceptions import error_message
from models.base import AlertSeverity
from schemas.api import BatchExecutionResult, BatchJobResult
from ingestion.alerts import AlertService
from ingestion.executor import PipelineExecutor

logger = logging.getLogger(__name__)


class BatchCoordinator:
    """
    Runs a list of jobs, one after another by default.

    A failing job (pre-flight error, or any exception escaping the executor)
    becomes a success=False entry; later jobs are always attempted. With
    max_concurrency > 1 jobs overlap, and the executor's per-DataSource locks
    keep jobs that share a source from interleaving. Results always follow
    the input order.
    """

    def __init__(
        self,
        executor: PipelineExecutor,
        alerts: Optional[AlertService] = None,
        max_concurrency: Optional[int] = None,
    ):
        self.executor = executor
        self.alerts = alerts
        self.max_concurrency = max(1, max_concurrency or settings.BATCH_MAX_CONCURRENCY)

    async def execute_batch_jobs(self, job_ids: List[str]) -> BatchExecutionResult:
        logger.info(f"Starting batch execution of {len(job_ids)} jobs")

        if self.max_concurrency == 1:
            results = [await self._execute_one(job_id) for job_id in job_ids]
        else:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def bounded(job_id: str) -> BatchJobResult:
                async with semaphore:
                    return await self._execute_one(job_id)

            results = list(await asyncio.gather(*(bounded(job_id) for job_id in job_ids)))

        success_count = sum(1 for result in results if result.success)
        failure_count = len(results) - success_count

        batch = BatchExecutionResult(
            total_jobs=len(job_ids),
            success_count=success_count,
            failure_count=failure_count,
            results=results,
        )

        logger.info(f"Batch job execution completed: {success_count}/{len(job_ids)} successful")
        if self.alerts:
            await self.alerts.create_alert(
                AlertSeverity.WARNING if failure_count else AlertSeverity.SUCCESS,
                f"Batch job execution completed: {success_count}/{len(job_ids)} successful",
                source="batch_coordinator",
                category="batch_execution",
                title="Batch Execution Completed",
                details={"success_count": success_count, "failure_count": failure_count},
            )
        return batch

    async def _execute_one(self, job_id: str) -> BatchJobResult:
        try:
            result = await self.executor.execute_job(job_id)
        except Exception as e:
            message = error_message(e)
            logger.error(f"Batch entry {job_id} failed: {message}")
            return BatchJobResult(job_id=job_id, success=False, message=f"Job execution failed: {message}")

        return BatchJobResult(
            job_id=job_id,
            success=result.success,
            message=result.message,
            job_run_id=result.job_run_id,
        )
