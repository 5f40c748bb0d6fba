"""
In-process connector: inline records as input, an in-memory sink as output
"""

import copy
from typing import List, Dict, Any, Optional
from models.base import DataSourceType
from schemas.configs import ExtractionConfig
from schemas.entities import DataSource
from ingestion.connectors.base import DataConnector, Record, apply_extraction
import logging

logger = logging.getLogger(__name__)


class MemoryConnector(DataConnector):
    """
    Serves `memory` data sources.

    Extraction reads the records held in the source config. Loads are kept
    per destination id in `sinks`, which lives as long as the connector.
    """

    source_type = DataSourceType.MEMORY

    def __init__(self):
        self.sinks: Dict[str, List[Record]] = {}

    async def probe(self, source: DataSource) -> Dict[str, Any]:
        return {
            "type": source.type.value,
            "records_available": len(source.config.data),
            "records_loaded": len(self.sinks.get(source.id, [])),
        }

    async def extract(self, source: DataSource, extraction: Optional[ExtractionConfig] = None) -> List[Record]:
        records = copy.deepcopy(source.config.data)
        return apply_extraction(records, extraction or source.extraction)

    async def load(self, destination: DataSource, records: List[Record], truncate: bool = False) -> int:
        sink = self.sinks.setdefault(destination.id, [])
        if truncate:
            sink.clear()
        sink.extend(copy.deepcopy(records))
        logger.debug(f"Loaded {len(records)} records into memory sink {destination.name}")
        return len(records)

    def written(self, destination_id: str) -> List[Record]:
        """Records loaded into a destination so far."""
        return list(self.sinks.get(destination_id, []))
