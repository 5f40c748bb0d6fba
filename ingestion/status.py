"""
Derived system status snapshot (never stored)
"""

import logging
from datetime import datetime
from typing import Optional
from core.config import settings
from models.base import JobStatus, SystemStatus
from schemas.api import AggregatedRecordCounts, JobRunSummary, SystemStatusSnapshot
from storage.base import StateStore, EntityKind

logger = logging.getLogger(__name__)

FAILED_STATUSES = (JobStatus.ERROR, JobStatus.ABORTED)


class SystemStatusAggregator:
    """
    Projects registry and run state into a SystemStatusSnapshot.

    Reads only; two calls over the same state (and the same `now`) return
    equal snapshots.
    """

    def __init__(self, store: StateStore, recent_runs_limit: Optional[int] = None):
        self.store = store
        self.recent_runs_limit = recent_runs_limit or settings.RECENT_RUNS_LIMIT

    async def snapshot(self, now: Optional[datetime] = None) -> SystemStatusSnapshot:
        jobs = await self.store.list(EntityKind.JOBS)
        sources = await self.store.list(EntityKind.DATA_SOURCES)
        rules = await self.store.list(EntityKind.TRANSFORMATIONS)
        runs = await self.store.list(EntityKind.JOB_RUNS)

        success_runs = sum(1 for run in runs if run.status == JobStatus.SUCCESS)
        failed_runs = sum(1 for run in runs if run.status in FAILED_STATUSES)
        running_jobs = {run.job_id for run in runs if run.status == JobStatus.RUNNING}

        if not jobs and not sources:
            status = SystemStatus.STARTING
        elif failed_runs > success_runs:
            status = SystemStatus.DEGRADED
        else:
            status = SystemStatus.HEALTHY

        counts = AggregatedRecordCounts()
        for run in runs:
            counts.processed += run.metrics.records_processed
            counts.succeeded += run.metrics.records_success
            counts.failed += run.metrics.records_error
            counts.skipped += run.metrics.records_skipped
            counts.extracted += run.record_counts.extracted
            counts.transformed += run.record_counts.transformed
            counts.loaded += run.record_counts.loaded
            counts.rejected += run.record_counts.rejected

        recent = sorted(runs, key=lambda run: run.start_time, reverse=True)[:self.recent_runs_limit]

        return SystemStatusSnapshot(
            status=status,
            scheduler_status=SystemStatus.RUNNING if running_jobs else SystemStatus.ONLINE,
            job_count=len(jobs),
            enabled_job_count=sum(1 for job in jobs if job.enabled),
            data_source_count=len(sources),
            enabled_data_source_count=sum(1 for source in sources if source.is_active),
            transformation_rule_count=len(rules),
            enabled_transformation_rule_count=sum(1 for rule in rules if rule.enabled),
            running_job_count=len(running_jobs),
            success_job_runs=success_runs,
            failed_job_runs=failed_runs,
            record_counts=counts,
            recent_job_runs=[
                JobRunSummary(
                    id=run.id,
                    job_id=run.job_id,
                    status=run.status,
                    start_time=run.start_time,
                    end_time=run.end_time,
                    records_processed=run.metrics.records_processed,
                    execution_time_ms=run.metrics.execution_time_ms,
                    error=run.error,
                )
                for run in recent
            ],
            last_updated=now or datetime.utcnow(),
        )
