from typing import Optional
import httpx
from models.base import DataSourceType
from ingestion.connectors.base import DataConnector, ConnectorRegistry, apply_extraction
from ingestion.connectors.memory_connector import MemoryConnector
from ingestion.connectors.file_connector import FileConnector
from ingestion.connectors.api_connector import ApiConnector
from ingestion.connectors.config_only import ConfigOnlyConnector


def default_connectors(api_transport: Optional[httpx.AsyncBaseTransport] = None) -> ConnectorRegistry:
    """Connector set shipped with the engine, one per DataSourceType."""
    return ConnectorRegistry([
        MemoryConnector(),
        FileConnector(),
        ApiConnector(transport=api_transport),
        ConfigOnlyConnector(DataSourceType.DATABASE),
        ConfigOnlyConnector(DataSourceType.FTP),
    ])


__all__ = [
    "DataConnector",
    "ConnectorRegistry",
    "apply_extraction",
    "MemoryConnector",
    "FileConnector",
    "ApiConnector",
    "ConfigOnlyConnector",
    "default_connectors",
]
