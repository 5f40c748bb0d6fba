from sqlalchemy import Column, String, Text, DateTime, Enum, Index
from datetime import datetime
from models.base import Base, JSONType, DataSourceType, DataSourceStatus


class DataSourceModel(Base):
    """
    Registered data endpoints, usable as extraction input or load output.

    Design:
    - config holds the type-specific payload (validated by the Pydantic
      tagged union on the way in and out)
    - last_sync_date is written by the load phase of the executor
    - connection_info keeps the outcome of the latest connection test
    """
    __tablename__ = "data_sources"

    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    type = Column(Enum(DataSourceType), nullable=False, index=True)

    config = Column(JSONType, nullable=False)
    extraction = Column(JSONType, nullable=True)
    connection_info = Column(JSONType, nullable=True)
    tags = Column(JSONType, nullable=True)

    status = Column(Enum(DataSourceStatus), default=DataSourceStatus.ACTIVE, nullable=False, index=True)
    last_sync_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_data_source_type_status", "type", "status"),
    )
