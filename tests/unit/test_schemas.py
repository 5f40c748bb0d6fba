"""
Unit tests for entity schemas
"""

import pytest
from datetime import datetime, timedelta
from pydantic import ValidationError
from core.exceptions import InvalidRunTransitionError
from models.base import DataSourceType, JobStatus, LogLevel, TransformationType
from schemas.configs import AggregateFunction, FileSourceConfig, FilterOperator, MemorySourceConfig
from schemas.entities import (
    DataSourceCreate,
    JobCreate,
    JobRun,
    JobSchedule,
    TransformationCreate,
    duration_ms,
)


class TestDataSourceSchema:
    """Config variant selection for data sources"""

    def test_defaults_to_memory_source(self):
        source = DataSourceCreate()

        assert source.name == "New Data Source"
        assert source.type == DataSourceType.MEMORY
        assert isinstance(source.config, MemorySourceConfig)
        assert source.config.data == []

    def test_config_follows_source_type(self):
        source = DataSourceCreate(
            name="customers",
            type="file",
            config={"file_path": "/data/customers.csv", "format": "csv"}
        )

        assert isinstance(source.config, FileSourceConfig)
        assert source.config.file_path == "/data/customers.csv"

    def test_config_missing_required_field_rejected(self):
        with pytest.raises(ValidationError):
            DataSourceCreate(name="broken", type="file", config={"format": "csv"})

    def test_config_type_mismatch_rejected(self):
        with pytest.raises(ValidationError):
            DataSourceCreate(name="mixed", type="api", config={"type": "memory", "data": []})

    def test_api_method_upper_cased(self):
        source = DataSourceCreate(name="api", type="api", config={"url": "https://example.com", "method": "post"})

        assert source.config.method == "POST"


class TestTransformationSchema:

    def test_aggregate_accepts_as_alias_and_lower_case_function(self):
        rule = TransformationCreate(
            name="totals",
            type="aggregate",
            config={
                "group_by": ["country"],
                "aggregations": [{"function": "sum", "field": "amount", "as": "total"}]
            }
        )

        aggregation = rule.config.aggregations[0]
        assert rule.type == TransformationType.AGGREGATE
        assert aggregation.function == AggregateFunction.SUM
        assert aggregation.as_ == "total"

    def test_filter_condition_operator_parsed(self):
        rule = TransformationCreate(
            type="filter",
            config={"conditions": [{"field": "amount", "operator": "greater_than", "value": 10}]}
        )

        assert rule.config.conditions[0].operator == FilterOperator.GREATER_THAN

    def test_custom_requires_function_name(self):
        with pytest.raises(ValidationError):
            TransformationCreate(type="custom", config={})


class TestJobSchema:

    def test_legacy_single_references_merged_in_front(self):
        job = JobCreate(name="legacy", source="a", sources=["b", "c"], destination="d")

        assert job.sources == ["a", "b", "c"]
        assert job.destinations == ["d"]

    def test_legacy_reference_not_duplicated(self):
        job = JobCreate(name="legacy", source="a", sources=["a", "b"])

        assert job.sources == ["a", "b"]

    def test_settings_defaults(self):
        job = JobCreate(name="defaults")

        assert job.settings.stop_on_error is True
        assert job.settings.truncate_destination is False
        assert job.settings.batch_size >= 1
        assert job.enabled is True

    def test_custom_schedule_requires_cron(self):
        with pytest.raises(ValidationError):
            JobSchedule(frequency="custom")

        schedule = JobSchedule(frequency="custom", cron_expression="0 * * * *")
        assert schedule.cron_expression == "0 * * * *"


class TestJobRun:
    """Run status transitions and log ordering"""

    def _run(self, start=None):
        return JobRun(id="run-1", job_id="job-1", start_time=start or datetime(2024, 1, 15, 10, 0, 0))

    def test_transition_sets_end_time_and_duration(self):
        run = self._run()
        end = run.start_time + timedelta(milliseconds=1500)

        run.transition(JobStatus.SUCCESS, end_time=end)

        assert run.status == JobStatus.SUCCESS
        assert run.end_time == end
        assert run.metrics.execution_time_ms == 1500
        assert run.is_terminal

    def test_end_time_never_before_start(self):
        run = self._run()

        run.transition(JobStatus.ERROR, error="boom", end_time=run.start_time - timedelta(seconds=5))

        assert run.end_time == run.start_time
        assert run.metrics.execution_time_ms == 0
        assert run.error == "boom"

    @pytest.mark.parametrize("status", [JobStatus.SUCCESS, JobStatus.ERROR, JobStatus.ABORTED, JobStatus.RUNNING])
    def test_terminal_run_cannot_transition(self, status):
        run = self._run()
        run.transition(JobStatus.SUCCESS)

        with pytest.raises(InvalidRunTransitionError):
            run.transition(status)

        assert run.status == JobStatus.SUCCESS

    def test_running_to_running_rejected(self):
        run = self._run()

        with pytest.raises(InvalidRunTransitionError):
            run.transition(JobStatus.RUNNING)

    def test_log_timestamps_never_decrease(self):
        run = self._run()
        first = run.add_log(LogLevel.INFO, "first", timestamp=datetime(2024, 1, 15, 10, 0, 5))
        second = run.add_log(LogLevel.INFO, "second", timestamp=datetime(2024, 1, 15, 10, 0, 1))

        assert second.timestamp == first.timestamp
        assert [entry.message for entry in run.logs] == ["first", "second"]

    def test_terminal_run_rejects_new_logs(self):
        run = self._run()
        run.add_log(LogLevel.INFO, "started", timestamp=run.start_time)
        run.transition(JobStatus.SUCCESS, end_time=run.start_time + timedelta(seconds=1))

        with pytest.raises(InvalidRunTransitionError):
            run.add_log(LogLevel.INFO, "too late")

        assert [entry.message for entry in run.logs] == ["started"]

    def test_end_time_not_before_last_log(self):
        run = self._run()
        logged = run.add_log(LogLevel.INFO, "late entry", timestamp=run.start_time + timedelta(seconds=2))

        run.transition(JobStatus.ERROR, end_time=run.start_time + timedelta(seconds=1))

        assert run.end_time == logged.timestamp
        assert run.metrics.execution_time_ms == 2000

    def test_duration_ms_truncates_to_whole_milliseconds(self):
        start = datetime(2024, 1, 15, 10, 0, 0)

        assert duration_ms(start, start + timedelta(microseconds=2999)) == 2
