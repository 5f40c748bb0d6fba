"""
Pydantic schemas for validation and serialization.

This package defines the entity models the orchestration engine operates on
and the request/response shapes the API exposes:

Schemas:
    configs: Tagged-union configs for data sources and transformations
    entities: DataSource, Transformation, Job, JobRun (with LogEntry), Alert
    api: Operation results (connection tests, job runs, batches) and the
         system status snapshot

Features:
    - Type-specific configs discriminated by the owning entity's `type`
    - Legacy `source`/`destination` job keys folded into ordered id lists
    - JobRun status guarded to RUNNING -> terminal transitions only
    - OpenAPI schema generation for FastAPI

Usage:
    from schemas import JobCreate, DataSourceCreate
    from schemas.api import JobRunResult, SystemStatusSnapshot

Example:
    source = DataSourceCreate(
        name="customers",
        type="file",
        config={"file_path": "/data/customers.csv", "format": "csv"},
    )

    # The config variant is picked from the source type
    assert source.config.file_path == "/data/customers.csv"
"""

from schemas.entities import (
    DataSource,
    DataSourceCreate,
    Transformation,
    TransformationCreate,
    Job,
    JobCreate,
    JobRun,
    LogEntry,
    Alert,
)

__all__ = [
    "DataSource",
    "DataSourceCreate",
    "Transformation",
    "TransformationCreate",
    "Job",
    "JobCreate",
    "JobRun",
    "LogEntry",
    "Alert",
]
