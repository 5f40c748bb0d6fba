from sqlalchemy import Column, String, Text, DateTime, Boolean
from datetime import datetime
from models.base import Base, JSONType


class JobModel(Base):
    """
    ETL job definitions.

    Source, transformation and destination references are stored as ordered
    id lists. Referential integrity is not enforced here: dangling ids are
    detected (and logged as warnings) by the executor at run time.
    """
    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)

    sources = Column(JSONType, nullable=False)
    transformations = Column(JSONType, nullable=False)
    destinations = Column(JSONType, nullable=False)

    schedule = Column(JSONType, nullable=False)
    settings = Column(JSONType, nullable=False)

    enabled = Column(Boolean, nullable=False, default=True, index=True)
    tags = Column(JSONType, nullable=True)

    last_run_id = Column(String(36), nullable=True)
    last_run_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
