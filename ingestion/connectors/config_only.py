"""
Placeholder connectors for source types that need an external driver
"""

from typing import List, Dict, Any, Optional
from core.exceptions import ConnectorUnavailableError
from models.base import DataSourceType
from schemas.configs import ExtractionConfig
from schemas.entities import DataSource
from ingestion.connectors.base import DataConnector, Record

SECRET_FIELDS = {"password"}


class ConfigOnlyConnector(DataConnector):
    """
    Serves database and FTP sources until a real driver is registered.

    The probe validates and reports the typed connection settings without
    opening a connection; extract and load raise ConnectorUnavailableError.
    """

    def __init__(self, source_type: DataSourceType):
        self.source_type = source_type

    async def probe(self, source: DataSource) -> Dict[str, Any]:
        info = source.config.model_dump(exclude=SECRET_FIELDS, exclude_none=True)
        info["driver"] = None
        return info

    def _unavailable(self, source: DataSource, operation: str) -> ConnectorUnavailableError:
        return ConnectorUnavailableError(
            f"No {self.source_type.value} driver available to {operation} {source.name}",
            context={"source_id": source.id, "source_type": self.source_type.value}
        )

    async def extract(self, source: DataSource, extraction: Optional[ExtractionConfig] = None) -> List[Record]:
        raise self._unavailable(source, "extract from")

    async def load(self, destination: DataSource, records: List[Record], truncate: bool = False) -> int:
        raise self._unavailable(destination, "load into")
