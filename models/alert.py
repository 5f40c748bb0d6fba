from sqlalchemy import Column, String, Text, DateTime, Enum, Boolean, Index
from models.base import Base, AlertSeverity, AlertCategory


class AlertModel(Base):
    """Durable, severity-tagged operator notifications."""
    __tablename__ = "alerts"

    id = Column(String(36), primary_key=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    details = Column(Text, nullable=True)

    severity = Column(Enum(AlertSeverity), nullable=False, index=True)
    category = Column(Enum(AlertCategory), nullable=False, index=True)
    source = Column(String(200), nullable=False)
    related_entity_id = Column(String(36), nullable=True)

    acknowledged = Column(Boolean, nullable=False, default=False, index=True)
    timestamp = Column(DateTime, nullable=False, index=True)

    __table_args__ = (
        Index("idx_alert_category_timestamp", "category", "timestamp"),
    )
