"""
SQLAlchemy ORM models for the durable state store.

This package defines the database schema used by storage.sql.SQLAlchemyStore:

Models:
    base: Base declarative class and shared enums (DataSourceType, JobStatus, ...)
    data_source: Registered data endpoints
    transformation: Ordered transformation rules
    job: Job definitions (source/transformation/destination id lists)
    job_run: Job runs and their append-only log entries
    alert: Operator alerts

Database Schema:
    All models inherit from the Base declarative class. Type-specific
    payloads (data source config, job settings, run metrics) are stored in
    JSON columns, which become JSONB on PostgreSQL.

Usage:
    from models import Base, JobRunModel, JobLogEntryModel
    from models.base import DataSourceType, JobStatus

Relationships:
    - JobRunModel → JobLogEntryModel (one-to-many, owned, ordered by sequence)
"""

from models.base import Base
from models.data_source import DataSourceModel
from models.transformation import TransformationModel
from models.job import JobModel
from models.job_run import JobRunModel, JobLogEntryModel
from models.alert import AlertModel

__all__ = [
    "Base",
    "DataSourceModel",
    "TransformationModel",
    "JobModel",
    "JobRunModel",
    "JobLogEntryModel",
    "AlertModel",
]
