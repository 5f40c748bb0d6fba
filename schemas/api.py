"""
Pydantic schemas for operation results and API request/response models
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import JobStatus, SystemStatus
from schemas.entities import JobMetrics


# ============================================================================
# Connection Testing Schemas
# ============================================================================

class ConnectionTestResult(BaseModel):
    """
    Outcome of a connection probe or sample extraction.

    `details` always carries `latency_ms` (>= 0); on success it also carries
    `connection_info` (and `record_count`/`sample` for sample extractions),
    on failure it carries `error`.
    """
    success: bool
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @property
    def latency_ms(self) -> float:
        return self.details.get("latency_ms", 0.0)

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Successfully connected to products_api",
                "details": {
                    "latency_ms": 42.7,
                    "connection_info": {"type": "api", "url": "https://example.com/products", "status_code": 200}
                },
                "timestamp": "2024-01-15T10:30:00Z"
            }
        }


class ExtractionTestRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1, description="Sample size (defaults to SAMPLE_EXTRACTION_LIMIT)")


# ============================================================================
# Execution Schemas
# ============================================================================

class JobRunResult(BaseModel):
    """Result of executing a single job"""
    success: bool
    job_run_id: str
    status: JobStatus
    message: str
    metrics: JobMetrics
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class BatchExecutionRequest(BaseModel):
    job_ids: List[str] = Field(..., alias="jobIds")

    class Config:
        populate_by_name = True


class BatchJobResult(BaseModel):
    job_id: str
    success: bool
    message: str
    job_run_id: Optional[str] = None


class BatchExecutionResult(BaseModel):
    total_jobs: int
    success_count: int
    failure_count: int
    results: List[BatchJobResult] = Field(default_factory=list)


# ============================================================================
# System Status Schemas
# ============================================================================

class AggregatedRecordCounts(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    extracted: int = 0
    transformed: int = 0
    loaded: int = 0
    rejected: int = 0


class JobRunSummary(BaseModel):
    id: str
    job_id: str
    status: JobStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    records_processed: int = 0
    execution_time_ms: int = 0
    error: Optional[str] = None


class SystemStatusSnapshot(BaseModel):
    """Point-in-time projection of registry and run state. Never stored."""
    status: SystemStatus
    scheduler_status: SystemStatus
    job_count: int
    enabled_job_count: int
    data_source_count: int
    enabled_data_source_count: int
    transformation_rule_count: int
    enabled_transformation_rule_count: int
    running_job_count: int
    success_job_runs: int
    failed_job_runs: int
    record_counts: AggregatedRecordCounts
    recent_job_runs: List[JobRunSummary] = Field(default_factory=list)
    last_updated: datetime


class HealthResponse(BaseModel):
    status: str
    environment: str
    storage_backend: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "error": "JobNotFoundError",
                "detail": "Job not found: 4f1c...",
                "context": {"job_id": "4f1c..."},
                "timestamp": "2024-01-15T10:30:00Z"
            }
        }


class ToggleResult(BaseModel):
    """Answer to enable/disable on an id that is not registered"""
    id: str
    enabled: Optional[bool] = None
    updated: bool = False
