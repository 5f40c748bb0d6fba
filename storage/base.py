"""
Storage interface for engine state.

The executor, registries and alert service only talk to a StateStore, so the
in-memory implementation (tests, local runs) and the SQLAlchemy implementation
(durable deployments) are interchangeable.
"""

import enum
from abc import ABC, abstractmethod
from typing import List, Optional, Type
from pydantic import BaseModel
from schemas.entities import DataSource, Transformation, Job, JobRun, Alert


class EntityKind(str, enum.Enum):
    JOBS = "jobs"
    DATA_SOURCES = "data_sources"
    TRANSFORMATIONS = "transformations"
    JOB_RUNS = "job_runs"
    ALERTS = "alerts"


ENTITY_SCHEMAS = {
    EntityKind.JOBS: Job,
    EntityKind.DATA_SOURCES: DataSource,
    EntityKind.TRANSFORMATIONS: Transformation,
    EntityKind.JOB_RUNS: JobRun,
    EntityKind.ALERTS: Alert,
}


def schema_for(kind: EntityKind) -> Type[BaseModel]:
    return ENTITY_SCHEMAS[kind]


class StateStore(ABC):
    """
    Keyed entity store.

    Every entity has a string `id`. Implementations return copies, so callers
    must `put` an entity back for a mutation to become visible.
    """

    async def initialize(self) -> None:
        """Prepare the backend (create schema, open pools)."""
        return None

    async def close(self) -> None:
        return None

    @abstractmethod
    async def put(self, kind: EntityKind, entity: BaseModel) -> BaseModel:
        """Insert or replace an entity by id."""
        pass

    @abstractmethod
    async def get(self, kind: EntityKind, entity_id: str) -> Optional[BaseModel]:
        """Return the entity, or None when the id is unknown."""
        pass

    @abstractmethod
    async def list(self, kind: EntityKind) -> List[BaseModel]:
        """Return all entities of a kind in insertion order."""
        pass

    @abstractmethod
    async def delete(self, kind: EntityKind, entity_id: str) -> bool:
        """Remove an entity. Returns False when the id was unknown."""
        pass
