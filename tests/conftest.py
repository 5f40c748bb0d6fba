"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from typing import Any, Dict, List, Optional
from models.base import DataSourceType
from storage.memory import InMemoryStore
from storage.sql import SQLAlchemyStore
from ingestion.container import build_services


@pytest.fixture
def services():
    """Engine on an in-memory store, with retries that never sleep"""
    return build_services(InMemoryStore(), retry_backoff=0)


@pytest.fixture
def memory_connector(services):
    return services.connectors.get(DataSourceType.MEMORY)


@pytest_asyncio.fixture(scope="function")
async def sqlite_store(tmp_path):
    """SQLAlchemy store on a throwaway SQLite database"""
    store = SQLAlchemyStore(f"sqlite+aiosqlite:///{tmp_path / 'etl_test.db'}")
    await store.initialize()

    yield store

    await store.close()


@pytest.fixture
def make_source(services):
    """Factory registering an in-memory data source"""

    async def factory(name: str, data: Optional[List[Dict[str, Any]]] = None, **fields):
        return await services.data_sources.create({
            "name": name,
            "type": "memory",
            "config": {"data": data or []},
            **fields
        })

    return factory


@pytest.fixture
def make_job(services):
    """Factory registering a job with fast-failing settings"""

    async def factory(name: str = "test job", settings: Optional[Dict[str, Any]] = None, **fields):
        return await services.jobs.create({
            "name": name,
            "settings": {"max_retries": 0, **(settings or {})},
            **fields
        })

    return factory


@pytest.fixture
def sample_records():
    """Mock customer records"""
    return [
        {"id": 1, "name": "Alice", "country": "DE", "amount": 120.0, "segment": "retail"},
        {"id": 2, "name": "Bob", "country": "US", "amount": 80.5, "segment": "retail"},
        {"id": 3, "name": "Carla", "country": "DE", "amount": 42.0, "segment": "wholesale"},
        {"id": 4, "name": "Dan", "country": "FR", "amount": None, "segment": "wholesale"},
    ]
