"""
Abstract connector interface between the engine and external data endpoints
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
from core.exceptions import ConnectorUnavailableError
from models.base import DataSourceType
from schemas.configs import ExtractionConfig
from schemas.entities import DataSource
import logging

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class DataConnector(ABC):
    """
    Abstract base class for all data source connectors.

    Responsibilities:
    - Reachability probe (used by the connection tester)
    - Record extraction honoring the source's ExtractionConfig
    - Record load into a destination
    """

    source_type: DataSourceType

    @abstractmethod
    async def probe(self, source: DataSource) -> Dict[str, Any]:
        """
        Check that the endpoint is reachable.

        Returns:
            Connection info describing the endpoint

        Raises:
            ETLException (or any exception) when the endpoint is unreachable
        """
        pass

    @abstractmethod
    async def extract(self, source: DataSource, extraction: Optional[ExtractionConfig] = None) -> List[Record]:
        """
        Fetch records from the source.

        Args:
            source: Registered data source
            extraction: Options overriding source.extraction (limit, fields, filters)

        Returns:
            List of raw record dictionaries
        """
        pass

    @abstractmethod
    async def load(self, destination: DataSource, records: List[Record], truncate: bool = False) -> int:
        """
        Write records to a destination.

        Args:
            destination: Registered data source used as output
            records: Records to write
            truncate: Replace existing destination content instead of appending

        Returns:
            Number of records written
        """
        pass


def apply_extraction(records: List[Record], extraction: Optional[ExtractionConfig]) -> List[Record]:
    """Apply equality filters, field projection and the row limit, in that order."""
    if extraction is None:
        return records

    if extraction.filters:
        records = [
            record for record in records
            if all(record.get(field) == value for field, value in extraction.filters.items())
        ]

    if extraction.fields:
        records = [
            {field: record.get(field) for field in extraction.fields}
            for record in records
        ]

    if extraction.limit is not None:
        records = records[:extraction.limit]

    return records


class ConnectorRegistry:
    """Maps a DataSourceType to the connector that serves it."""

    def __init__(self, connectors: Optional[List[DataConnector]] = None):
        self._connectors: Dict[DataSourceType, DataConnector] = {}
        for connector in connectors or []:
            self.register(connector)

    def register(self, connector: DataConnector) -> None:
        self._connectors[connector.source_type] = connector
        logger.debug(f"Registered {type(connector).__name__} for {connector.source_type.value} sources")

    def get(self, source_type: DataSourceType) -> DataConnector:
        connector = self._connectors.get(source_type)
        if connector is None:
            raise ConnectorUnavailableError(
                f"No connector registered for {source_type.value} sources",
                context={"source_type": source_type.value}
            )
        return connector

    def __contains__(self, source_type: DataSourceType) -> bool:
        return source_type in self._connectors
