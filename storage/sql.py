"""
Durable state store on SQLAlchemy async sessions.

Entities are mapped onto the ORM tables in `models/`. Nested Pydantic
payloads (configs, settings, metrics) go to JSON columns in their JSON-mode
dump; scalar columns keep native Python values. Job run logs live in their
own table and are only ever appended on re-save.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
from sqlalchemy import JSON, select, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from core.config import Settings
from core.database import create_engine, create_session_maker
from core.exceptions import StorageError
from models import (
    Base,
    DataSourceModel,
    TransformationModel,
    JobModel,
    JobRunModel,
    JobLogEntryModel,
    AlertModel,
)
from storage.base import StateStore, EntityKind, schema_for
from storage.memory import InMemoryStore
import logging

logger = logging.getLogger(__name__)


ENTITY_MODELS = {
    EntityKind.JOBS: (JobModel, JobModel.created_at),
    EntityKind.DATA_SOURCES: (DataSourceModel, DataSourceModel.created_at),
    EntityKind.TRANSFORMATIONS: (TransformationModel, TransformationModel.created_at),
    EntityKind.JOB_RUNS: (JobRunModel, JobRunModel.start_time),
    EntityKind.ALERTS: (AlertModel, AlertModel.timestamp),
}


def _column_keys(model) -> Dict[str, bool]:
    """Mapped attribute keys of a model, flagged True for JSON columns."""
    return {
        attr.key: isinstance(attr.columns[0].type, JSON)
        for attr in inspect(model).column_attrs
    }


class SQLAlchemyStore(StateStore):
    """
    StateStore over an async SQLAlchemy engine.

    Works against PostgreSQL (asyncpg, JSONB payloads) in deployments and
    SQLite (aiosqlite) in tests and local runs.
    """

    def __init__(self, database_url: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        self.engine = engine or create_engine(database_url)
        self.session_maker = create_session_maker(self.engine)
        self._columns = {kind: _column_keys(model) for kind, (model, _) in ENTITY_MODELS.items()}

    async def initialize(self) -> None:
        """Create all tables (idempotent)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema initialized")

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _session(self, operation: str, kind: EntityKind):
        async with self.session_maker() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Storage {operation} failed for {kind.value}: {str(e)}")
                raise StorageError(
                    f"Failed to {operation} {kind.value}",
                    context={"kind": kind.value},
                    original_exception=e
                )

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    def _to_row(self, kind: EntityKind, entity: BaseModel) -> Dict[str, Any]:
        python_values = entity.model_dump(by_alias=True)
        json_values = entity.model_dump(mode="json", by_alias=True)
        return {
            key: json_values[key] if is_json else python_values[key]
            for key, is_json in self._columns[kind].items()
            if key in python_values
        }

    def _from_row(self, kind: EntityKind, row) -> BaseModel:
        data = {key: getattr(row, key) for key in self._columns[kind]}
        if kind == EntityKind.JOB_RUNS:
            data["logs"] = [
                {"timestamp": entry.timestamp, "level": entry.level, "message": entry.message}
                for entry in row.logs
            ]
        if "tags" in data and data["tags"] is None:
            data["tags"] = []
        return schema_for(kind).model_validate(data)

    # ------------------------------------------------------------------
    # StateStore
    # ------------------------------------------------------------------

    async def put(self, kind: EntityKind, entity: BaseModel) -> BaseModel:
        model, _ = ENTITY_MODELS[kind]
        values = self._to_row(kind, entity)

        async with self._session("save", kind) as session:
            row = await session.get(model, entity.id)
            if row is None:
                row = model(**values)
                session.add(row)
            else:
                for key, value in values.items():
                    setattr(row, key, value)

            if kind == EntityKind.JOB_RUNS:
                self._append_logs(row, entity)

            await session.commit()

        return entity

    def _append_logs(self, row: JobRunModel, run) -> None:
        stored = len(row.logs)
        for sequence, entry in enumerate(run.logs[stored:], start=stored):
            row.logs.append(JobLogEntryModel(
                sequence=sequence,
                timestamp=entry.timestamp,
                level=entry.level,
                message=entry.message,
            ))

    async def get(self, kind: EntityKind, entity_id: str) -> Optional[BaseModel]:
        model, _ = ENTITY_MODELS[kind]
        async with self._session("read", kind) as session:
            row = await session.get(model, entity_id)
            return self._from_row(kind, row) if row is not None else None

    async def list(self, kind: EntityKind) -> List[BaseModel]:
        model, order_column = ENTITY_MODELS[kind]
        async with self._session("list", kind) as session:
            result = await session.execute(select(model).order_by(order_column))
            return [self._from_row(kind, row) for row in result.scalars().all()]

    async def delete(self, kind: EntityKind, entity_id: str) -> bool:
        model, _ = ENTITY_MODELS[kind]
        async with self._session("delete", kind) as session:
            row = await session.get(model, entity_id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True


def build_store(config: Settings) -> StateStore:
    """Pick the storage backend from STORAGE_BACKEND."""
    backend = config.STORAGE_BACKEND.lower()
    if backend == "memory":
        return InMemoryStore()
    if backend in ("database", "sql", "postgres"):
        return SQLAlchemyStore(config.DATABASE_URL)
    raise ValueError(f"Unknown STORAGE_BACKEND: {config.STORAGE_BACKEND}")
