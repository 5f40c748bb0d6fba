"""
Pluggable state storage.

Backends:
    memory: InMemoryStore, process-lifetime state (default, tests)
    sql: SQLAlchemyStore, durable state on the ORM tables in `models/`

Usage:
    from storage import EntityKind, build_store
    from core.config import settings

    store = build_store(settings)
    await store.initialize()
    job = await store.get(EntityKind.JOBS, job_id)
"""

from storage.base import StateStore, EntityKind
from storage.memory import InMemoryStore
from storage.sql import SQLAlchemyStore, build_store

__all__ = [
    "StateStore",
    "EntityKind",
    "InMemoryStore",
    "SQLAlchemyStore",
    "build_store",
]
