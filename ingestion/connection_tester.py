"""
Connection testing: reachability probes and bounded sample extractions.

A failed connection is reported as ConnectionTestResult(success=False), never
raised. Only a missing source (programmer error) raises.
"""

import time
import logging
from datetime import datetime
from typing import Dict, List, Optional
from core.config import settings
from core.exceptions import error_message
from models.base import AlertCategory
from schemas.api import ConnectionTestResult
from schemas.entities import DataSource
from ingestion.alerts import AlertService
from ingestion.connectors.base import ConnectorRegistry
from ingestion.registry import DataSourceRegistry

logger = logging.getLogger(__name__)


def _latency_ms(started: float) -> float:
    return max(0.0, round((time.perf_counter() - started) * 1000, 3))


class ConnectionTester:
    """
    Probes data sources through their connectors.

    When built with a DataSourceRegistry, every result is also recorded on
    the source's connection_info.
    """

    def __init__(
        self,
        connectors: ConnectorRegistry,
        alerts: Optional[AlertService] = None,
        data_sources: Optional[DataSourceRegistry] = None,
    ):
        self.connectors = connectors
        self.alerts = alerts
        self.data_sources = data_sources

    async def test_connection(self, source: DataSource) -> ConnectionTestResult:
        if source is None:
            raise ValueError("test_connection requires a data source")

        started = time.perf_counter()
        logger.info(f"Testing connection to {source.name} ({source.type.value})")

        try:
            connector = self.connectors.get(source.type)
            connection_info = await connector.probe(source)
        except Exception as e:
            message = error_message(e)
            result = ConnectionTestResult(
                success=False,
                message=f"Failed to connect to {source.name}: {message}",
                details={"latency_ms": _latency_ms(started), "error": message},
                timestamp=datetime.utcnow(),
            )
            logger.warning(result.message)
            if self.alerts:
                await self.alerts.error(
                    result.message,
                    source="connection_tester",
                    category=AlertCategory.CONNECTION,
                    title="Connection Failed",
                    related_entity_id=source.id,
                )
            await self._record(source, result)
            return result

        result = ConnectionTestResult(
            success=True,
            message=f"Successfully connected to {source.name}",
            details={"latency_ms": _latency_ms(started), "connection_info": connection_info},
            timestamp=datetime.utcnow(),
        )
        logger.info(f"{result.message} in {result.latency_ms}ms")
        await self._record(source, result)
        return result

    async def batch_test_connections(self, sources: List[DataSource]) -> Dict[str, ConnectionTestResult]:
        """Test sources one after another, keyed by source id."""
        results = {}
        for source in sources:
            results[source.id] = await self.test_connection(source)
        return results

    async def test_extraction(self, source: DataSource, limit: Optional[int] = None) -> ConnectionTestResult:
        """Test the connection, then fetch a bounded sample with the source's extraction config."""
        if source is None:
            raise ValueError("test_extraction requires a data source")

        started = time.perf_counter()
        connection = await self.test_connection(source)
        if not connection.success:
            return connection

        sample_limit = limit or settings.SAMPLE_EXTRACTION_LIMIT
        extraction = source.extraction.model_copy(update={"limit": sample_limit})

        try:
            connector = self.connectors.get(source.type)
            records = await connector.extract(source, extraction)
        except Exception as e:
            message = error_message(e)
            logger.warning(f"Sample extraction from {source.name} failed: {message}")
            return ConnectionTestResult(
                success=False,
                message=f"Extraction test failed for {source.name}: {message}",
                details={"latency_ms": _latency_ms(started), "error": message},
                timestamp=datetime.utcnow(),
            )

        records = records[:sample_limit]
        return ConnectionTestResult(
            success=True,
            message=f"Successfully extracted {len(records)} sample records from {source.name}",
            details={
                "latency_ms": _latency_ms(started),
                "connection_info": connection.details.get("connection_info", {}),
                "record_count": len(records),
                "sample": records,
            },
            timestamp=datetime.utcnow(),
        )

    async def _record(self, source: DataSource, result: ConnectionTestResult) -> None:
        if self.data_sources is not None:
            await self.data_sources.record_connection_result(source.id, result)
