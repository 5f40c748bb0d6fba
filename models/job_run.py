from sqlalchemy import Column, String, Text, DateTime, Enum, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from models.base import Base, JSONType, JobStatus, LogLevel


class JobRunModel(Base):
    """
    One execution attempt of a job.

    Purpose:
    - Audit trail of all job runs
    - Metrics for the system status view
    - Error tracking and debugging (error + ordered log entries)
    """
    __tablename__ = "job_runs"

    id = Column(String(36), primary_key=True)
    job_id = Column(String(36), nullable=False, index=True)

    status = Column(Enum(JobStatus), nullable=False, default=JobStatus.RUNNING, index=True)
    error = Column(Text, nullable=True)

    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=True)

    metrics = Column(JSONType, nullable=False)
    record_counts = Column(JSONType, nullable=False)

    logs = relationship(
        "JobLogEntryModel",
        back_populates="job_run",
        order_by="JobLogEntryModel.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_job_run_job_started", "job_id", "start_time"),
    )


class JobLogEntryModel(Base):
    """Append-only log entries owned by exactly one job run."""
    __tablename__ = "job_log_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_run_id = Column(String(36), ForeignKey("job_runs.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    timestamp = Column(DateTime, nullable=False)
    level = Column(Enum(LogLevel), nullable=False)
    message = Column(Text, nullable=False)

    job_run = relationship("JobRunModel", back_populates="logs")

    __table_args__ = (
        Index("idx_log_entry_run_sequence", "job_run_id", "sequence", unique=True),
    )
