from sqlalchemy import Column, String, Text, DateTime, Enum, Integer, Boolean
from datetime import datetime
from models.base import Base, JSONType, TransformationType


class TransformationModel(Base):
    """Transformation rules applied between extraction and load, ascending by order."""
    __tablename__ = "transformations"

    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Enum(TransformationType), nullable=False, index=True)

    order = Column("execution_order", Integer, nullable=False, default=0)
    enabled = Column(Boolean, nullable=False, default=True, index=True)

    config = Column(JSONType, nullable=False)
    code = Column(Text, nullable=True)
    tags = Column(JSONType, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
