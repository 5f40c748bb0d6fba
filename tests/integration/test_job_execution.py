"""
Integration tests for end-to-end job execution
"""

import asyncio
import pytest
from core.exceptions import InvalidRunTransitionError, JobNotFoundError, JobRunNotFoundError, NoSourcesDefinedError
from models.base import AlertCategory, AlertSeverity, JobStatus, LogLevel
from schemas.entities import duration_ms
from storage.base import EntityKind


def messages(run, level=None):
    return [entry.message for entry in run.logs if level is None or entry.level == level]


@pytest.mark.asyncio
async def test_two_sources_into_one_destination(services, make_source, make_job, memory_connector):
    """
    10 + 15 records, no transformations, one destination
    """
    source_a = await make_source("A", [{"id": f"a{i}"} for i in range(10)])
    source_b = await make_source("B", [{"id": f"b{i}"} for i in range(15)])
    destination = await make_source("D")
    job = await make_job(sources=[source_a.id, source_b.id], destinations=[destination.id])

    result = await services.executor.execute_job(job.id)

    assert result.success is True
    assert result.status == JobStatus.SUCCESS
    assert result.metrics.records_processed == 25
    assert result.metrics.records_success == 25
    assert result.metrics.progress == 100

    run = await services.executor.get_job_run(result.job_run_id)
    assert run.status == JobStatus.SUCCESS
    assert run.record_counts.extracted == 25
    assert run.record_counts.loaded == 25
    assert any("skipping" in message for message in messages(run))
    assert "Extracted 10 records from source: A" in messages(run)
    assert "Loaded 25 records to destination: D" in messages(run)

    stored_destination = await services.data_sources.get(destination.id)
    assert stored_destination.last_sync_date is not None
    assert len(memory_connector.written(destination.id)) == 25


@pytest.mark.asyncio
async def test_missing_source_degrades_to_warning(services, make_job):
    job = await make_job(sources=["missing-1"])

    result = await services.executor.execute_job(job.id)

    assert result.success is True
    assert result.metrics.records_processed == 0
    assert "Data source missing-1 not found, skipping" in result.warnings
    assert "No destinations defined, data will not be saved" in result.warnings

    run = await services.executor.get_job_run(result.job_run_id)
    assert run.status == JobStatus.SUCCESS
    assert "Data source missing-1 not found, skipping" in messages(run, LogLevel.WARNING)


@pytest.mark.asyncio
async def test_no_sources_is_preflight_error_without_run(services, make_job):
    job = await make_job(sources=[])

    with pytest.raises(NoSourcesDefinedError):
        await services.executor.execute_job(job.id)

    assert await services.store.list(EntityKind.JOB_RUNS) == []


@pytest.mark.asyncio
async def test_unknown_job_is_preflight_error(services):
    with pytest.raises(JobNotFoundError):
        await services.executor.execute_job("no-such-job")

    assert await services.executor.list_job_runs() == []


@pytest.mark.asyncio
async def test_disabled_only_transformation_leaves_data_untouched(services, make_source, make_job, sample_records):
    source = await make_source("customers", sample_records)
    rule = await services.transformations.create({
        "name": "drop everything",
        "type": "filter",
        "enabled": False,
        "config": {"conditions": [{"field": "id", "operator": "is_null"}]}
    })
    job = await make_job(sources=[source.id], transformations=[rule.id])

    result = await services.executor.execute_job(job.id)
    run = await services.executor.get_job_run(result.job_run_id)

    assert result.metrics.records_success == result.metrics.records_processed == 4
    assert result.metrics.records_error == 0
    assert "Skipping disabled transformation: drop everything" in messages(run)


@pytest.mark.asyncio
async def test_transformations_applied_in_order(services, make_source, make_job, memory_connector, sample_records):
    source = await make_source("customers", sample_records)
    destination = await make_source("out")
    rename = await services.transformations.create({
        "name": "rename",
        "type": "map",
        "order": 2,
        "config": {"mappings": [{"source": "name", "target": "customer"}], "include_original": False}
    })
    only_germany = await services.transformations.create({
        "name": "only germany",
        "type": "filter",
        "order": 1,
        "config": {"conditions": [{"field": "country", "operator": "equals", "value": "DE"}]}
    })
    job = await make_job(
        sources=[source.id],
        transformations=[rename.id, only_germany.id, "missing-rule"],
        destinations=[destination.id]
    )

    result = await services.executor.execute_job(job.id)
    run = await services.executor.get_job_run(result.job_run_id)

    assert memory_connector.written(destination.id) == [{"customer": "Alice"}, {"customer": "Carla"}]
    assert run.record_counts.rejected == 2
    assert run.record_counts.transformed == 2
    applied = [m for m in messages(run) if m.startswith("Applying transformation")]
    assert applied == ["Applying transformation: only germany (filter)", "Applying transformation: rename (map)"]
    assert "Transformation missing-rule not found, skipping" in result.warnings


@pytest.mark.asyncio
async def test_validation_skips_empty_records(services, make_source, make_job):
    source = await make_source("messy", [{"id": 1}, {}, {"id": 2}])
    job = await make_job(sources=[source.id])

    result = await services.executor.execute_job(job.id)

    assert result.metrics.records_processed == 2
    assert result.metrics.records_skipped == 1


@pytest.mark.asyncio
async def test_run_timing_invariants(services, make_source, make_job):
    source = await make_source("A", [{"id": 1}])
    job = await make_job(sources=[source.id])

    result = await services.executor.execute_job(job.id)
    run = await services.executor.get_job_run(result.job_run_id)

    assert run.end_time >= run.start_time
    assert run.metrics.execution_time_ms == duration_ms(run.start_time, run.end_time)
    timestamps = [entry.timestamp for entry in run.logs]
    assert timestamps == sorted(timestamps)
    assert run.logs[0].message == f"Starting execution of job: {job.name}"
    assert all(run.start_time <= ts <= run.end_time for ts in timestamps)
    assert run.logs[-1].message == f"Job completed successfully in {run.metrics.execution_time_ms}ms"


@pytest.mark.asyncio
async def test_finished_run_cannot_be_cancelled(services, make_source, make_job):
    source = await make_source("A", [{"id": 1}])
    job = await make_job(sources=[source.id])
    result = await services.executor.execute_job(job.id)

    with pytest.raises(InvalidRunTransitionError):
        await services.executor.cancel_run(result.job_run_id)

    assert (await services.executor.get_job_run(result.job_run_id)).status == JobStatus.SUCCESS


@pytest.mark.asyncio
async def test_unknown_run_lookup(services):
    with pytest.raises(JobRunNotFoundError):
        await services.executor.get_job_run("no-such-run")


@pytest.mark.asyncio
async def test_success_alert_raised(services, make_source, make_job):
    source = await make_source("A", [{"id": 1}])
    job = await make_job(sources=[source.id])

    await services.executor.execute_job(job.id)

    alerts = [a for a in await services.alerts.list_alerts(category=AlertCategory.JOB) if a.source == "pipeline_executor"]
    assert [a.title for a in alerts] == ["Job Completed"]
    assert alerts[0].severity == AlertSeverity.SUCCESS
    assert alerts[0].related_entity_id == job.id


@pytest.mark.asyncio
async def test_alerts_suppressed_by_settings(services, make_job):
    job = await make_job(sources=["missing"], settings={"alert_on_success": False})

    await services.executor.execute_job(job.id)

    alerts = await services.alerts.list_alerts(category=AlertCategory.JOB)
    assert [a for a in alerts if a.source == "pipeline_executor"] == []


class TestStopOnError:
    """Failure policy per unit of work"""

    async def _failing_setup(self, services, make_source, make_job, stop_on_error):
        good = await make_source("good", [{"id": 1}, {"id": 2}])
        broken = await services.data_sources.create({
            "name": "warehouse",
            "type": "database",
            "config": {"host": "db", "database": "dw", "user": "etl"}
        })
        destination = await make_source("out")
        job = await make_job(
            sources=[broken.id, good.id],
            destinations=[destination.id],
            settings={"stop_on_error": stop_on_error}
        )
        return job, destination

    @pytest.mark.asyncio
    async def test_stop_on_error_fails_run(self, services, make_source, make_job, memory_connector):
        job, destination = await self._failing_setup(services, make_source, make_job, True)

        result = await services.executor.execute_job(job.id)
        run = await services.executor.get_job_run(result.job_run_id)

        assert result.success is False
        assert run.status == JobStatus.ERROR
        assert "No database driver available" in run.error
        assert run.logs[-1].level == LogLevel.ERROR
        assert run.logs[-1].message == f"Job execution failed: {run.error}"
        assert memory_connector.written(destination.id) == []

        alerts = await services.alerts.list_alerts(category=AlertCategory.JOB)
        assert alerts[0].title == "Job Failed"
        assert alerts[0].severity == AlertSeverity.ERROR

    @pytest.mark.asyncio
    async def test_continue_on_error_skips_failed_unit(self, services, make_source, make_job, memory_connector):
        job, destination = await self._failing_setup(services, make_source, make_job, False)

        result = await services.executor.execute_job(job.id)

        assert result.success is True
        assert result.metrics.records_processed == 2
        assert any("warehouse" in error for error in result.errors)
        assert len(memory_connector.written(destination.id)) == 2

    @pytest.mark.asyncio
    async def test_failed_transformation_counted(self, services, make_source, make_job):
        source = await make_source("A", [{"id": 1}])
        rule = await services.transformations.create({
            "name": "unregistered",
            "type": "custom",
            "config": {"function": "not_there"}
        })
        job = await make_job(sources=[source.id], transformations=[rule.id], settings={"stop_on_error": False})

        result = await services.executor.execute_job(job.id)

        assert result.success is True
        assert result.metrics.records_error == 1
        assert result.metrics.records_success == 1


class TestRetries:

    @pytest.mark.asyncio
    async def test_transient_extraction_failure_retried(self, services, make_source, make_job, memory_connector):
        from core.exceptions import NetworkError

        source = await make_source("flaky", [{"id": 1}])
        job = await make_job(sources=[source.id], settings={"max_retries": 2})
        real_extract = memory_connector.extract
        failures = [NetworkError("blip"), NetworkError("blip")]

        async def flaky_extract(source, extraction=None):
            if failures:
                raise failures.pop()
            return await real_extract(source, extraction)

        memory_connector.extract = flaky_extract

        result = await services.executor.execute_job(job.id)

        assert result.success is True
        assert result.metrics.records_processed == 1


class TestTimeoutAndCancellation:

    @pytest.mark.asyncio
    async def test_timeout_aborts_run(self, services, make_source, make_job):
        async def slow(records, parameters):
            await asyncio.sleep(5)
            return records

        services.engine.register_function("slow", slow)
        source = await make_source("A", [{"id": 1}])
        rule = await services.transformations.create({"name": "slow", "type": "custom", "config": {"function": "slow"}})
        job = await make_job(sources=[source.id], transformations=[rule.id], settings={"timeout_ms": 50})

        result = await services.executor.execute_job(job.id)
        run = await services.executor.get_job_run(result.job_run_id)

        assert result.success is False
        assert run.status == JobStatus.ABORTED
        assert "timed out" in run.error
        assert run.logs[-1].timestamp <= run.end_time

        alerts = await services.alerts.list_alerts(category=AlertCategory.JOB)
        assert alerts[0].severity == AlertSeverity.WARNING

    @pytest.mark.asyncio
    async def test_cancel_in_flight_run(self, services, make_source, make_job):
        started = asyncio.Event()

        async def blocking(records, parameters):
            started.set()
            await asyncio.sleep(5)
            return records

        services.engine.register_function("blocking", blocking)
        source = await make_source("A", [{"id": 1}])
        rule = await services.transformations.create({"name": "block", "type": "custom", "config": {"function": "blocking"}})
        job = await make_job(sources=[source.id], transformations=[rule.id])

        execution = asyncio.ensure_future(services.executor.execute_job(job.id))
        await asyncio.wait_for(started.wait(), timeout=2)

        running = (await services.executor.list_job_runs(job.id))[0]
        assert running.status == JobStatus.RUNNING
        await services.executor.cancel_run(running.id)

        result = await asyncio.wait_for(execution, timeout=2)
        assert result.status == JobStatus.ABORTED
        assert (await services.executor.get_job_run(result.job_run_id)).error == "Job run cancelled"

    @pytest.mark.asyncio
    async def test_cancel_stale_running_run(self, services):
        from datetime import datetime
        from schemas.entities import JobRun

        stale = JobRun(id="stale", job_id="job-1", start_time=datetime.utcnow())
        await services.store.put(EntityKind.JOB_RUNS, stale)

        cancelled = await services.executor.cancel_run("stale")

        assert cancelled.status == JobStatus.ABORTED
        assert (await services.executor.get_job_run("stale")).status == JobStatus.ABORTED


@pytest.mark.asyncio
async def test_jobs_sharing_a_destination_do_not_interleave(services, make_source, make_job):
    events = []

    async def traced(records, parameters):
        events.append(f"{parameters['name']} start")
        await asyncio.sleep(0.02)
        events.append(f"{parameters['name']} end")
        return records

    services.engine.register_function("traced", traced)
    source = await make_source("A", [{"id": 1}])
    destination = await make_source("shared")
    jobs = []
    for name in ("first", "second"):
        rule = await services.transformations.create({
            "name": name, "type": "custom", "config": {"function": "traced", "parameters": {"name": name}}
        })
        jobs.append(await make_job(name, sources=[source.id], transformations=[rule.id], destinations=[destination.id]))

    results = await asyncio.gather(*(services.executor.execute_job(job.id) for job in jobs))

    assert all(result.success for result in results)
    assert events in (
        ["first start", "first end", "second start", "second end"],
        ["second start", "second end", "first start", "first end"],
    )


@pytest.mark.asyncio
async def test_job_runs_listed_newest_first(services, make_source, make_job):
    source = await make_source("A", [{"id": 1}])
    job = await make_job(sources=[source.id])

    first = await services.executor.execute_job(job.id)
    await asyncio.sleep(0.002)
    second = await services.executor.execute_job(job.id)

    runs = await services.executor.list_job_runs(job.id)
    assert [run.id for run in runs] == [second.job_run_id, first.job_run_id]
