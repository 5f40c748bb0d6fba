"""
Registries for jobs, data sources and transformation rules.

Each registry owns the canonical copy of its entities in the state store.
Mutations are serialised per registry; enable/disable/delete on an unknown id
are logged no-ops. References between jobs and the entities they name are not
checked here (the executor degrades dangling ids to warnings at run time).
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union
from pydantic import BaseModel
from core.exceptions import (
    ResourceNotFoundError,
    JobNotFoundError,
    DataSourceNotFoundError,
    TransformationNotFoundError,
)
from models.base import AlertCategory, DataSourceStatus
from schemas.entities import (
    DataSource,
    DataSourceCreate,
    Transformation,
    TransformationCreate,
    Job,
    JobCreate,
    JobRun,
)
from schemas.api import ConnectionTestResult
from storage.base import StateStore, EntityKind
from ingestion.alerts import AlertService

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=BaseModel)


class Registry(Generic[EntityT]):
    """
    Catalog of one entity kind on top of a StateStore.

    Subclasses declare the store kind, the create/entity schemas, the
    NotFound error and the alert category used on creation.
    """

    kind: EntityKind
    create_schema: Type[BaseModel]
    entity_schema: Type[BaseModel]
    not_found_error: Type[ResourceNotFoundError] = ResourceNotFoundError
    alert_category: AlertCategory = AlertCategory.SYSTEM
    label: str = "entity"

    def __init__(self, store: StateStore, alerts: Optional[AlertService] = None):
        self.store = store
        self.alerts = alerts
        self._lock = asyncio.Lock()

    @property
    def key(self) -> str:
        return self.label.replace(" ", "_")

    async def create(self, payload: Union[BaseModel, Dict[str, Any], None] = None) -> EntityT:
        """Register a new entity, filling id, timestamps and defaults."""
        if payload is None:
            payload = {}
        if isinstance(payload, dict):
            payload = self.create_schema.model_validate(payload)

        now = datetime.utcnow()
        entity = self.entity_schema.model_validate({
            **payload.model_dump(by_alias=True),
            "id": str(uuid.uuid4()),
            "created_at": now,
            "updated_at": now,
        })

        async with self._lock:
            await self.store.put(self.kind, entity)

        logger.info(f"Created {self.label} {entity.id} ({entity.name})")
        if self.alerts:
            await self.alerts.info(
                f"{self.label.capitalize()} '{entity.name}' created",
                source=f"{self.key}_registry",
                category=self.alert_category,
                related_entity_id=entity.id,
            )
        return entity

    async def list(self) -> List[EntityT]:
        return await self.store.list(self.kind)

    async def find(self, entity_id: str) -> Optional[EntityT]:
        """Like get(), but returns None for an unknown id."""
        return await self.store.get(self.kind, entity_id)

    async def get(self, entity_id: str) -> EntityT:
        entity = await self.store.get(self.kind, entity_id)
        if entity is None:
            raise self.not_found_error(
                f"{self.label.capitalize()} not found: {entity_id}",
                context={f"{self.key}_id": entity_id}
            )
        return entity

    async def enable(self, entity_id: str) -> Optional[EntityT]:
        return await self._set_enabled(entity_id, True)

    async def disable(self, entity_id: str) -> Optional[EntityT]:
        return await self._set_enabled(entity_id, False)

    async def delete(self, entity_id: str) -> bool:
        async with self._lock:
            deleted = await self.store.delete(self.kind, entity_id)
        if deleted:
            logger.info(f"Deleted {self.label} {entity_id}")
        else:
            logger.warning(f"Delete ignored: {self.label} {entity_id} not found")
        return deleted

    async def update(self, entity_id: str, **changes) -> Optional[EntityT]:
        """Apply field changes atomically. Returns None for an unknown id."""
        async with self._lock:
            entity = await self.store.get(self.kind, entity_id)
            if entity is None:
                return None
            for field, value in changes.items():
                setattr(entity, field, value)
            entity.updated_at = datetime.utcnow()
            await self.store.put(self.kind, entity)
        return entity

    def _apply_enabled(self, entity: EntityT, enabled: bool) -> None:
        entity.enabled = enabled

    async def _set_enabled(self, entity_id: str, enabled: bool) -> Optional[EntityT]:
        action = "enable" if enabled else "disable"
        async with self._lock:
            entity = await self.store.get(self.kind, entity_id)
            if entity is None:
                logger.warning(f"{action.capitalize()} ignored: {self.label} {entity_id} not found")
                return None
            self._apply_enabled(entity, enabled)
            entity.updated_at = datetime.utcnow()
            await self.store.put(self.kind, entity)

        logger.info(f"{self.label.capitalize()} {entity_id} {action}d")
        return entity


class DataSourceRegistry(Registry[DataSource]):
    kind = EntityKind.DATA_SOURCES
    create_schema = DataSourceCreate
    entity_schema = DataSource
    not_found_error = DataSourceNotFoundError
    alert_category = AlertCategory.DATA_SOURCE
    label = "data source"

    def _apply_enabled(self, entity: DataSource, enabled: bool) -> None:
        entity.status = DataSourceStatus.ACTIVE if enabled else DataSourceStatus.INACTIVE

    async def mark_synced(self, source_id: str, when: Optional[datetime] = None) -> Optional[DataSource]:
        """Stamp last_sync_date after a successful load."""
        return await self.update(source_id, last_sync_date=when or datetime.utcnow())

    async def record_connection_result(self, source_id: str, result: ConnectionTestResult) -> Optional[DataSource]:
        async with self._lock:
            source = await self.store.get(self.kind, source_id)
            if source is None:
                return None
            info = source.connection_info
            info.last_attempt = result.timestamp
            if result.success:
                info.last_success = result.timestamp
                info.last_error = None
            else:
                info.last_error = result.details.get("error", result.message)
                info.error_count += 1
            await self.store.put(self.kind, source)
        return source


class TransformationRegistry(Registry[Transformation]):
    kind = EntityKind.TRANSFORMATIONS
    create_schema = TransformationCreate
    entity_schema = Transformation
    not_found_error = TransformationNotFoundError
    alert_category = AlertCategory.TRANSFORMATION
    label = "transformation"


class JobRegistry(Registry[Job]):
    kind = EntityKind.JOBS
    create_schema = JobCreate
    entity_schema = Job
    not_found_error = JobNotFoundError
    alert_category = AlertCategory.JOB
    label = "job"

    async def record_run(self, job_id: str, run: JobRun) -> Optional[Job]:
        """Remember the latest run on the job definition."""
        return await self.update(job_id, last_run_id=run.id, last_run_date=run.start_time)
