# ============================================================================
# File: ingestion/executor.py
# Description: Phased job executor (extract -> transform -> load)
# ============================================================================
"""
Pipeline Executor - runs one job through extract, transform and load.

This module provides:
- Pre-flight validation (unknown job, no sources) before any run exists
- A JobRun per execution with metrics, record counts and an ordered log
- Per-unit error handling: missing references degrade to warnings, genuine
  failures abort the run or are skipped depending on settings.stop_on_error
- Retries with exponential backoff for transient unit failures
- Timeout (settings.timeout_ms) and cancellation, both ending in ABORTED
- Per-DataSource locks so concurrent jobs never share a source mid-run
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.exceptions import (
    JobNotFoundError,
    NoSourcesDefinedError,
    JobAbortedError,
    JobTimeoutError,
    JobRunNotFoundError,
    ExtractionError,
    InvalidRunTransitionError,
    error_message,
)
from models.base import AlertCategory, JobStatus, LogLevel
from schemas.api import JobRunResult
from schemas.entities import Job, JobRun, DataSource, duration_ms
from storage.base import StateStore, EntityKind
from ingestion.alerts import AlertService
from ingestion.connection_tester import ConnectionTester
from ingestion.connectors.base import ConnectorRegistry
from ingestion.loaders.batch_loader import DestinationLoader
from ingestion.locks import ResourceLockManager
from ingestion.registry import JobRegistry, DataSourceRegistry, TransformationRegistry
from ingestion.retry import call_with_retries
from ingestion.transformers.engine import TransformationEngine

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}

ALERT_SOURCE = "pipeline_executor"


class RunContext:
    """Mutable state of one in-flight run."""

    def __init__(self, job: Job, run: JobRun):
        self.job = job
        self.run = run
        self.records: List[Dict[str, Any]] = []
        self.warnings: List[str] = []
        self.errors: List[str] = []
        self.deadline: Optional[float] = None
        self.cancel_requested = False
        self.phase_task: Optional[asyncio.Task] = None


class PipelineExecutor:
    """
    Job Executor

    Responsibilities:
    - Validate the job before creating a run
    - Run Extract → Transform → Load strictly in sequence
    - Keep the run's metrics, record counts and logs current
    - Persist the run after every phase
    - Raise success/failure alerts per job settings
    """

    def __init__(
        self,
        store: StateStore,
        jobs: JobRegistry,
        data_sources: DataSourceRegistry,
        transformations: TransformationRegistry,
        connectors: ConnectorRegistry,
        tester: ConnectionTester,
        engine: TransformationEngine,
        alerts: AlertService,
        loader: Optional[DestinationLoader] = None,
        locks: Optional[ResourceLockManager] = None,
        retry_backoff: Optional[float] = None,
    ):
        self.store = store
        self.jobs = jobs
        self.data_sources = data_sources
        self.transformations = transformations
        self.connectors = connectors
        self.tester = tester
        self.engine = engine
        self.alerts = alerts
        self.retry_backoff = retry_backoff
        self.loader = loader or DestinationLoader(connectors, retry_backoff=retry_backoff)
        self.locks = locks or ResourceLockManager()
        self._active: Dict[str, RunContext] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute_job(self, job_id: str) -> JobRunResult:
        """
        Execute a job and return the outcome of its run.

        Raises:
            JobNotFoundError: unknown job id (no run is created)
            NoSourcesDefinedError: job has no sources (no run is created)

        Every other failure ends the run in ERROR (or ABORTED on timeout or
        cancellation) and is reported through the returned JobRunResult.
        """
        job = await self.jobs.find(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}", context={"job_id": job_id})
        if not job.sources:
            raise NoSourcesDefinedError(
                f"Job '{job.name}' has no data sources defined",
                context={"job_id": job_id}
            )

        run = JobRun(id=str(uuid.uuid4()), job_id=job.id, start_time=datetime.utcnow())
        ctx = RunContext(job, run)
        self._active[run.id] = ctx

        try:
            self._log(ctx, LogLevel.INFO, f"Starting execution of job: {job.name}")
            await self._save(ctx)
            await self.jobs.record_run(job.id, run)

            try:
                await self._run_phases(ctx)
            except JobAbortedError as e:
                await self._finish_aborted(ctx, e)
            except Exception as e:
                await self._finish_failed(ctx, e)
            else:
                await self._finish_succeeded(ctx)
        finally:
            self._active.pop(run.id, None)

        return self._result(ctx)

    async def cancel_run(self, run_id: str) -> JobRun:
        """
        Request cancellation of a running run.

        An in-flight run stops at its current suspension point and ends
        ABORTED. A RUNNING run with no live execution (e.g. left over from a
        previous process) is marked ABORTED directly.
        """
        ctx = self._active.get(run_id)
        if ctx is not None:
            ctx.cancel_requested = True
            if ctx.phase_task is not None and not ctx.phase_task.done():
                ctx.phase_task.cancel()
            logger.info(f"Cancellation requested for job run {run_id}")
            return ctx.run.model_copy(deep=True)

        run = await self.get_job_run(run_id)
        if run.is_terminal:
            raise InvalidRunTransitionError(
                f"Job run {run_id} already finished with status {run.status.value}",
                context={"job_run_id": run_id}
            )
        run.add_log(LogLevel.WARNING, "Job run cancelled")
        run.transition(JobStatus.ABORTED, error="Job run cancelled")
        await self.store.put(EntityKind.JOB_RUNS, run)
        return run

    async def get_job_run(self, run_id: str) -> JobRun:
        run = await self.store.get(EntityKind.JOB_RUNS, run_id)
        if run is None:
            raise JobRunNotFoundError(f"Job run not found: {run_id}", context={"job_run_id": run_id})
        return run

    async def list_job_runs(self, job_id: Optional[str] = None) -> List[JobRun]:
        """Runs newest first, optionally for one job."""
        runs = await self.store.list(EntityKind.JOB_RUNS)
        if job_id is not None:
            runs = [run for run in runs if run.job_id == job_id]
        return sorted(runs, key=lambda run: run.start_time, reverse=True)

    # ------------------------------------------------------------------
    # Phase orchestration
    # ------------------------------------------------------------------

    async def _run_phases(self, ctx: RunContext) -> None:
        job = ctx.job
        resource_ids = list(job.sources) + list(job.destinations)

        if any(self.locks.is_locked(resource_id) for resource_id in resource_ids):
            self._log(ctx, LogLevel.INFO, "Waiting for data sources in use by another job")

        async with self.locks.hold(resource_ids):
            if job.settings.timeout_ms:
                ctx.deadline = asyncio.get_running_loop().time() + job.settings.timeout_ms / 1000

            await self._run_phase(ctx, self._extract(ctx))
            await self._save(ctx)

            await self._run_phase(ctx, self._transform(ctx))
            await self._save(ctx)

            await self._run_phase(ctx, self._load(ctx))
            await self._save(ctx)

    async def _run_phase(self, ctx: RunContext, phase) -> None:
        """Await one phase as a cancellable task bounded by the run deadline."""
        if ctx.cancel_requested:
            phase.close()
            raise JobAbortedError("Job run cancelled", context={"job_run_id": ctx.run.id})

        timeout = None
        if ctx.deadline is not None:
            timeout = ctx.deadline - asyncio.get_running_loop().time()
            if timeout <= 0:
                phase.close()
                raise self._timeout_error(ctx)

        ctx.phase_task = asyncio.ensure_future(phase)
        try:
            await asyncio.wait_for(ctx.phase_task, timeout=timeout)
        except asyncio.TimeoutError:
            raise self._timeout_error(ctx)
        except asyncio.CancelledError:
            if ctx.cancel_requested:
                raise JobAbortedError("Job run cancelled", context={"job_run_id": ctx.run.id})
            raise
        finally:
            ctx.phase_task = None

    def _timeout_error(self, ctx: RunContext) -> JobTimeoutError:
        return JobTimeoutError(
            f"Job timed out after {ctx.job.settings.timeout_ms}ms",
            context={"job_id": ctx.job.id, "job_run_id": ctx.run.id}
        )

    # --------------------------------------------------
    # PHASE 1: EXTRACT
    # --------------------------------------------------

    async def _extract(self, ctx: RunContext) -> None:
        job, run = ctx.job, ctx.run
        self._log(ctx, LogLevel.INFO, "Starting extraction phase")
        self._set_progress(ctx, 10)

        extracted = 0
        for source_id in job.sources:
            source = await self.data_sources.find(source_id)
            if source is None:
                self._log(ctx, LogLevel.WARNING, f"Data source {source_id} not found, skipping")
                continue

            try:
                records = await self._extract_source(ctx, source)
            except Exception as e:
                self._log(ctx, LogLevel.ERROR, f"Extraction from source {source.name} failed: {error_message(e)}")
                if job.settings.stop_on_error:
                    raise
                continue

            extracted += len(records)
            if job.settings.validate_data:
                valid = [record for record in records if isinstance(record, dict) and record]
                skipped = len(records) - len(valid)
                if skipped:
                    run.metrics.records_skipped += skipped
                    self._log(ctx, LogLevel.WARNING, f"Skipped {skipped} invalid records from source: {source.name}")
                records = valid

            ctx.records.extend(records)
            self._log(ctx, LogLevel.INFO, f"Extracted {len(records)} records from source: {source.name}")

        run.record_counts.extracted = extracted
        run.metrics.records_processed = len(ctx.records)
        self._log(ctx, LogLevel.INFO, f"Extract phase completed. Total records: {len(ctx.records)}")
        self._set_progress(ctx, 33)

    async def _extract_source(self, ctx: RunContext, source: DataSource) -> List[Dict[str, Any]]:
        connection = await self.tester.test_connection(source)
        if not connection.success:
            raise ExtractionError(
                connection.message,
                context={"source_id": source.id, "source_type": source.type.value}
            )

        connector = self.connectors.get(source.type)
        return await call_with_retries(
            lambda: connector.extract(source, source.extraction),
            max_retries=ctx.job.settings.max_retries,
            description=f"Extraction from {source.name}",
            backoff=self.retry_backoff,
        )

    # --------------------------------------------------
    # PHASE 2: TRANSFORM
    # --------------------------------------------------

    async def _transform(self, ctx: RunContext) -> None:
        job, run = ctx.job, ctx.run

        if not job.transformations:
            self._log(ctx, LogLevel.INFO, "No transformations defined, skipping transform phase")
        else:
            self._log(ctx, LogLevel.INFO, "Starting transformation phase")

            rules = []
            for transformation_id in job.transformations:
                rule = await self.transformations.find(transformation_id)
                if rule is None:
                    self._log(ctx, LogLevel.WARNING, f"Transformation {transformation_id} not found, skipping")
                    continue
                rules.append(rule)

            for rule in sorted(rules, key=lambda r: r.order):
                if not rule.enabled:
                    self._log(ctx, LogLevel.INFO, f"Skipping disabled transformation: {rule.name}")
                    continue

                self._log(ctx, LogLevel.INFO, f"Applying transformation: {rule.name} ({rule.type.value})")
                try:
                    outcome = await self.engine.apply(rule, ctx.records)
                except Exception as e:
                    run.metrics.records_error += 1
                    self._log(ctx, LogLevel.ERROR, f"Transformation {rule.name} failed: {error_message(e)}")
                    if job.settings.stop_on_error:
                        raise
                    continue

                ctx.records = outcome.records
                run.record_counts.rejected += outcome.rejected
                self._log(ctx, LogLevel.INFO, f"Transformation {rule.name} produced {len(ctx.records)} records")

            self._log(ctx, LogLevel.INFO, f"Transform phase completed. Total records: {len(ctx.records)}")

        run.metrics.records_success = len(ctx.records)
        run.record_counts.transformed = len(ctx.records)
        self._set_progress(ctx, 66)

    # --------------------------------------------------
    # PHASE 3: LOAD
    # --------------------------------------------------

    async def _load(self, ctx: RunContext) -> None:
        job, run = ctx.job, ctx.run
        self._log(ctx, LogLevel.INFO, "Starting load phase")

        resolved = 0
        for destination_id in job.destinations:
            destination = await self.data_sources.find(destination_id)
            if destination is None:
                self._log(ctx, LogLevel.WARNING, f"Destination {destination_id} not found, skipping")
                continue
            resolved += 1

            try:
                loaded = await self.loader.load_batch(
                    destination,
                    ctx.records,
                    batch_size=job.settings.batch_size,
                    truncate=job.settings.truncate_destination,
                    max_retries=job.settings.max_retries,
                )
            except Exception as e:
                self._log(ctx, LogLevel.ERROR, f"Load into destination {destination.name} failed: {error_message(e)}")
                if job.settings.stop_on_error:
                    raise
                continue

            await self.data_sources.mark_synced(destination.id)
            run.record_counts.loaded += loaded
            self._log(ctx, LogLevel.INFO, f"Loaded {loaded} records to destination: {destination.name}")

        if resolved == 0:
            self._log(ctx, LogLevel.WARNING, "No destinations defined, data will not be saved")

        self._set_progress(ctx, 100)

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    async def _finish_succeeded(self, ctx: RunContext) -> None:
        job, run = ctx.job, ctx.run
        end_time = max([datetime.utcnow(), run.start_time] + [entry.timestamp for entry in run.logs[-1:]])
        self._log(
            ctx,
            LogLevel.INFO,
            f"Job completed successfully in {duration_ms(run.start_time, end_time)}ms",
            timestamp=end_time,
        )
        run.transition(JobStatus.SUCCESS, end_time=end_time)
        await self._save(ctx)

        if job.settings.alert_on_success:
            await self.alerts.success(
                f"Job '{job.name}' completed successfully. "
                f"Processed {run.metrics.records_processed} records in {run.metrics.execution_time_ms}ms",
                source=ALERT_SOURCE,
                category="job_execution",
                title="Job Completed",
                details=run.metrics.model_dump(),
                related_entity_id=job.id,
            )

    async def _finish_failed(self, ctx: RunContext, exc: Exception) -> None:
        job, run = ctx.job, ctx.run
        message = error_message(exc)
        logger.debug(f"Job run {run.id} failed", exc_info=exc)

        self._log(ctx, LogLevel.ERROR, f"Job execution failed: {message}")
        run.transition(JobStatus.ERROR, error=message)
        await self._save(ctx)

        if job.settings.alert_on_failure:
            await self.alerts.error(
                f"Job '{job.name}' failed: {message}",
                source=ALERT_SOURCE,
                category="job_execution",
                title="Job Failed",
                details={"job_run_id": run.id, "errors": ctx.errors},
                related_entity_id=job.id,
            )

    async def _finish_aborted(self, ctx: RunContext, exc: JobAbortedError) -> None:
        job, run = ctx.job, ctx.run
        message = error_message(exc)

        self._log(ctx, LogLevel.WARNING, f"Job execution aborted: {message}")
        run.transition(JobStatus.ABORTED, error=message)
        await self._save(ctx)

        if job.settings.alert_on_failure:
            await self.alerts.warning(
                f"Job '{job.name}' aborted: {message}",
                source=ALERT_SOURCE,
                category="job_execution",
                title="Job Aborted",
                related_entity_id=job.id,
            )

    def _result(self, ctx: RunContext) -> JobRunResult:
        run = ctx.run
        if run.status == JobStatus.SUCCESS:
            message = f"Job completed successfully in {run.metrics.execution_time_ms}ms"
        elif run.status == JobStatus.ABORTED:
            message = f"Job execution aborted: {run.error}"
        else:
            message = f"Job execution failed: {run.error}"

        return JobRunResult(
            success=run.status == JobStatus.SUCCESS,
            job_run_id=run.id,
            status=run.status,
            message=message,
            metrics=run.metrics.model_copy(),
            warnings=list(ctx.warnings),
            errors=list(ctx.errors),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _log(self, ctx: RunContext, level: LogLevel, message: str, timestamp: Optional[datetime] = None) -> None:
        """Append to the run log and mirror to the module logger."""
        ctx.run.add_log(level, message, timestamp=timestamp)
        if level == LogLevel.WARNING:
            ctx.warnings.append(message)
        elif level == LogLevel.ERROR:
            ctx.errors.append(message)
        logger.log(LOG_LEVELS[level], f"[Job Run {ctx.run.id}] [{level.value.upper()}] {message}")

    def _set_progress(self, ctx: RunContext, progress: int) -> None:
        ctx.run.metrics.progress = progress
        self._log(ctx, LogLevel.INFO, f"Job progress: {progress}%")

    async def _save(self, ctx: RunContext) -> None:
        await self.store.put(EntityKind.JOB_RUNS, ctx.run)
