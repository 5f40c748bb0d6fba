"""
Pydantic schemas for the orchestration entities: data sources, transformations,
jobs, job runs with their logs, and alerts.
"""

from pydantic import BaseModel, Field, validator, root_validator
from typing import Optional, List, Any
from datetime import datetime, timedelta
from core.config import settings
from core.exceptions import InvalidRunTransitionError
from models.base import (
    DataSourceType,
    DataSourceStatus,
    TransformationType,
    JobStatus,
    JobFrequency,
    LogLevel,
    AlertSeverity,
    AlertCategory,
)
from schemas.configs import (
    DataSourceConfig,
    ExtractionConfig,
    TransformationConfig,
    with_type_tag,
)


def duration_ms(start: datetime, end: datetime) -> int:
    """Whole milliseconds elapsed between two timestamps."""
    return (end - start) // timedelta(milliseconds=1)


def _tag_config(values: Any, default_type: Any) -> Any:
    if not isinstance(values, dict):
        return values
    values = dict(values)
    type_value = values.get("type") or default_type
    values["type"] = type_value
    values["config"] = with_type_tag(values.get("config"), getattr(type_value, "value", type_value))
    return values


# ============================================================================
# Data Sources
# ============================================================================

class ConnectionInfo(BaseModel):
    """Connection bookkeeping updated by the connection tester"""
    last_attempt: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_error: Optional[str] = None
    error_count: int = 0


class DataSourceBase(BaseModel):
    name: str = Field("New Data Source", min_length=1, max_length=200)
    description: Optional[str] = None
    type: DataSourceType = DataSourceType.MEMORY
    config: DataSourceConfig
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    status: DataSourceStatus = DataSourceStatus.ACTIVE
    tags: List[str] = Field(default_factory=list)

    @root_validator(pre=True)
    def tag_config(cls, values):
        """The config variant follows the source type"""
        return _tag_config(values, DataSourceType.MEMORY)

    @validator("config")
    def config_matches_type(cls, v, values):
        source_type = values.get("type")
        if source_type is not None and DataSourceType(v.type) != source_type:
            raise ValueError(f"config of type '{v.type}' does not match data source type '{source_type.value}'")
        return v


class DataSourceCreate(DataSourceBase):
    """Payload accepted by DataSourceRegistry.create"""
    pass


class DataSource(DataSourceBase):
    """A registered data endpoint usable as extraction input or load output"""
    id: str
    last_sync_date: Optional[datetime] = None
    connection_info: ConnectionInfo = Field(default_factory=ConnectionInfo)
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status == DataSourceStatus.ACTIVE


# ============================================================================
# Transformations
# ============================================================================

class TransformationBase(BaseModel):
    name: str = Field("New Transformation", min_length=1, max_length=200)
    description: Optional[str] = None
    type: TransformationType = TransformationType.MAP
    order: int = 0
    enabled: bool = True
    config: TransformationConfig
    code: Optional[str] = Field(None, description="Free-form implementation payload, kept for display")
    tags: List[str] = Field(default_factory=list)

    @root_validator(pre=True)
    def tag_config(cls, values):
        return _tag_config(values, TransformationType.MAP)

    @validator("config")
    def config_matches_type(cls, v, values):
        rule_type = values.get("type")
        if rule_type is not None and TransformationType(v.type) != rule_type:
            raise ValueError(f"config of type '{v.type}' does not match transformation type '{rule_type.value}'")
        return v


class TransformationCreate(TransformationBase):
    pass


class Transformation(TransformationBase):
    id: str
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Jobs
# ============================================================================

class JobSchedule(BaseModel):
    """Frequency descriptor only; nothing in the engine triggers scheduled runs"""
    frequency: JobFrequency = JobFrequency.MANUAL
    cron_expression: Optional[str] = None
    interval_minutes: Optional[int] = Field(None, ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @validator("cron_expression", always=True)
    def cron_required_for_custom(cls, v, values):
        if values.get("frequency") == JobFrequency.CUSTOM and not v:
            raise ValueError("cron_expression is required for custom frequency")
        return v


class JobSettings(BaseModel):
    batch_size: int = Field(default_factory=lambda: settings.DEFAULT_BATCH_SIZE, ge=1)
    timeout_ms: Optional[int] = Field(default_factory=lambda: settings.DEFAULT_JOB_TIMEOUT_MS, ge=1)
    max_retries: int = Field(default_factory=lambda: settings.DEFAULT_MAX_RETRIES, ge=0)
    alert_on_success: bool = True
    alert_on_failure: bool = True
    validate_data: bool = True
    stop_on_error: bool = True
    truncate_destination: bool = False


class JobBase(BaseModel):
    name: str = Field("New Job", min_length=1, max_length=200)
    description: Optional[str] = None
    sources: List[str] = Field(default_factory=list)
    transformations: List[str] = Field(default_factory=list)
    destinations: List[str] = Field(default_factory=list)
    schedule: JobSchedule = Field(default_factory=JobSchedule)
    settings: JobSettings = Field(default_factory=JobSettings)
    enabled: bool = True
    tags: List[str] = Field(default_factory=list)

    @root_validator(pre=True)
    def merge_legacy_references(cls, values):
        """Fold legacy single `source`/`destination` keys into the ordered id lists"""
        if not isinstance(values, dict):
            return values
        values = dict(values)
        for legacy, field in (("source", "sources"), ("destination", "destinations")):
            single = values.pop(legacy, None)
            merged = list(values.get(field) or [])
            if single:
                merged.insert(0, single)
            seen = set()
            values[field] = [ref for ref in merged if not (ref in seen or seen.add(ref))]
        return values


class JobCreate(JobBase):
    pass


class Job(JobBase):
    id: str
    last_run_id: Optional[str] = None
    last_run_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Job Runs
# ============================================================================

class JobMetrics(BaseModel):
    records_processed: int = 0
    records_success: int = 0
    records_error: int = 0
    records_skipped: int = 0
    execution_time_ms: int = 0
    progress: int = Field(0, ge=0, le=100)


class RecordCounts(BaseModel):
    """Per-stage record counters"""
    extracted: int = 0
    transformed: int = 0
    loaded: int = 0
    rejected: int = 0


class LogEntry(BaseModel):
    timestamp: datetime
    level: LogLevel
    message: str


class JobRun(BaseModel):
    """
    One execution attempt of a job.

    Status only moves from RUNNING to a terminal state (SUCCESS, ERROR,
    ABORTED) and the run is immutable afterwards. Log entries are append-only
    and their timestamps never decrease.
    """
    id: str
    job_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    status: JobStatus = JobStatus.RUNNING
    error: Optional[str] = None
    metrics: JobMetrics = Field(default_factory=JobMetrics)
    record_counts: RecordCounts = Field(default_factory=RecordCounts)
    logs: List[LogEntry] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status != JobStatus.RUNNING

    def add_log(self, level: LogLevel, message: str, timestamp: Optional[datetime] = None) -> LogEntry:
        if self.is_terminal:
            raise InvalidRunTransitionError(
                f"Cannot log to job run in status {self.status.value}",
                context={"job_run_id": self.id}
            )
        timestamp = timestamp or datetime.utcnow()
        if self.logs and timestamp < self.logs[-1].timestamp:
            timestamp = self.logs[-1].timestamp
        entry = LogEntry(timestamp=timestamp, level=level, message=message)
        self.logs.append(entry)
        return entry

    def transition(self, status: JobStatus, error: Optional[str] = None, end_time: Optional[datetime] = None) -> None:
        """Move a running run to a terminal status and stamp its end time."""
        if self.is_terminal or status == JobStatus.RUNNING:
            raise InvalidRunTransitionError(
                f"Cannot move job run from {self.status.value} to {status.value}",
                context={"job_run_id": self.id}
            )
        end_time = max([end_time or datetime.utcnow(), self.start_time] + [entry.timestamp for entry in self.logs[-1:]])
        self.status = status
        self.error = error
        self.end_time = end_time
        self.metrics.execution_time_ms = duration_ms(self.start_time, end_time)


# ============================================================================
# Alerts
# ============================================================================

class Alert(BaseModel):
    id: str
    title: str
    message: str
    severity: AlertSeverity
    category: AlertCategory
    source: str
    timestamp: datetime
    acknowledged: bool = False
    details: Optional[str] = None
    related_entity_id: Optional[str] = None

