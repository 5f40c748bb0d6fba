"""
Service container: every engine component, built once and passed explicitly
"""

import logging
from typing import Any, Dict, List, Optional
from core.config import settings
from storage.base import StateStore
from storage.memory import InMemoryStore
from ingestion.alerts import AlertService
from ingestion.batch import BatchCoordinator
from ingestion.connection_tester import ConnectionTester
from ingestion.connectors import ConnectorRegistry, default_connectors
from ingestion.executor import PipelineExecutor
from ingestion.locks import ResourceLockManager
from ingestion.registry import JobRegistry, DataSourceRegistry, TransformationRegistry
from ingestion.status import SystemStatusAggregator
from ingestion.transformers.engine import TransformationEngine

logger = logging.getLogger(__name__)


class ETLServices:
    """Holds the wired components of one engine instance."""

    def __init__(
        self,
        store: StateStore,
        alerts: AlertService,
        jobs: JobRegistry,
        data_sources: DataSourceRegistry,
        transformations: TransformationRegistry,
        connectors: ConnectorRegistry,
        tester: ConnectionTester,
        engine: TransformationEngine,
        executor: PipelineExecutor,
        batch: BatchCoordinator,
        status: SystemStatusAggregator,
    ):
        self.store = store
        self.alerts = alerts
        self.jobs = jobs
        self.data_sources = data_sources
        self.transformations = transformations
        self.connectors = connectors
        self.tester = tester
        self.engine = engine
        self.executor = executor
        self.batch = batch
        self.status = status

    async def startup(self) -> None:
        await self.store.initialize()

    async def shutdown(self) -> None:
        await self.store.close()


def build_services(
    store: Optional[StateStore] = None,
    connectors: Optional[ConnectorRegistry] = None,
    retry_backoff: Optional[float] = None,
    max_concurrency: Optional[int] = None,
) -> ETLServices:
    """
    Wire an engine instance.

    Args:
        store: State store (defaults to a fresh InMemoryStore)
        connectors: Connector set (defaults to default_connectors())
        retry_backoff: Base backoff in seconds (defaults to RETRY_BACKOFF_SECONDS)
        max_concurrency: Batch concurrency (defaults to BATCH_MAX_CONCURRENCY)
    """
    store = store or InMemoryStore()
    connectors = connectors or default_connectors()

    alerts = AlertService(store)
    jobs = JobRegistry(store, alerts)
    data_sources = DataSourceRegistry(store, alerts)
    transformations = TransformationRegistry(store, alerts)
    tester = ConnectionTester(connectors, alerts, data_sources)

    async def load_reference(source_id: str) -> List[Dict[str, Any]]:
        source = await data_sources.get(source_id)
        return await connectors.get(source.type).extract(source, source.extraction)

    engine = TransformationEngine(reference_loader=load_reference)
    executor = PipelineExecutor(
        store=store,
        jobs=jobs,
        data_sources=data_sources,
        transformations=transformations,
        connectors=connectors,
        tester=tester,
        engine=engine,
        alerts=alerts,
        locks=ResourceLockManager(),
        retry_backoff=retry_backoff,
    )
    batch = BatchCoordinator(executor, alerts, max_concurrency=max_concurrency)
    status = SystemStatusAggregator(store, settings.RECENT_RUNS_LIMIT)

    logger.debug(f"Built ETL services on {type(store).__name__}")
    return ETLServices(
        store=store,
        alerts=alerts,
        jobs=jobs,
        data_sources=data_sources,
        transformations=transformations,
        connectors=connectors,
        tester=tester,
        engine=engine,
        executor=executor,
        batch=batch,
        status=status,
    )
