"""
Unit tests for batched destination loads, retries and data source locks
"""

import asyncio
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, patch
from core.exceptions import AuthenticationError, LoadError, NetworkError, RateLimitError
from schemas.entities import DataSource
from ingestion.connectors import ConnectorRegistry, MemoryConnector
from ingestion.loaders.batch_loader import DestinationLoader
from ingestion.locks import ResourceLockManager
from ingestion.retry import call_with_retries


def memory_destination(destination_id: str = "dest") -> DataSource:
    now = datetime.utcnow()
    return DataSource.model_validate({
        "id": destination_id,
        "name": "sink",
        "type": "memory",
        "config": {"data": []},
        "created_at": now,
        "updated_at": now,
    })


class TestCallWithRetries:

    @pytest.mark.asyncio
    async def test_retryable_errors_retried(self):
        operation = AsyncMock(side_effect=[NetworkError("blip"), NetworkError("blip"), "done"])

        result = await call_with_retries(operation, max_retries=2, description="op", backoff=0)

        assert result == "done"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        operation = AsyncMock(side_effect=NetworkError("down"))

        with pytest.raises(NetworkError):
            await call_with_retries(operation, max_retries=1, description="op", backoff=0)
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        operation = AsyncMock(side_effect=AuthenticationError("denied"))

        with pytest.raises(AuthenticationError):
            await call_with_retries(operation, max_retries=5, description="op", backoff=0)
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_backoff_doubles_and_honors_retry_after(self):
        operation = AsyncMock(side_effect=[
            NetworkError("blip"),
            NetworkError("blip"),
            RateLimitError("slow down", retry_after=7),
            "done",
        ])

        with patch("ingestion.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await call_with_retries(operation, max_retries=3, description="op", backoff=0.5)

        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0, 7]


class TestDestinationLoader:

    @pytest.mark.asyncio
    async def test_records_written_in_batches(self):
        connector = MemoryConnector()
        connector.load = AsyncMock(side_effect=lambda destination, batch, truncate=False: len(batch))
        loader = DestinationLoader(ConnectorRegistry([connector]), retry_backoff=0)

        loaded = await loader.load_batch(memory_destination(), [{"id": i} for i in range(25)], batch_size=10, truncate=True)

        assert loaded == 25
        sizes = [len(c.args[1]) for c in connector.load.await_args_list]
        truncates = [c.kwargs["truncate"] for c in connector.load.await_args_list]
        assert sizes == [10, 10, 5]
        assert truncates == [True, False, False]

    @pytest.mark.asyncio
    async def test_empty_load_still_truncates(self):
        connector = MemoryConnector()
        connector.sinks["dest"] = [{"id": "old"}]
        loader = DestinationLoader(ConnectorRegistry([connector]))

        assert await loader.load_batch(memory_destination(), [], truncate=True) == 0
        assert connector.written("dest") == []

    @pytest.mark.asyncio
    async def test_only_failed_batch_is_retried(self):
        connector = MemoryConnector()
        real_load = connector.load
        failures = [NetworkError("blip")]

        async def flaky_load(destination, batch, truncate=False):
            if batch[0]["id"] == 2 and failures:
                raise failures.pop()
            return await real_load(destination, batch, truncate=truncate)

        connector.load = flaky_load
        loader = DestinationLoader(ConnectorRegistry([connector]), retry_backoff=0)

        await loader.load_batch(memory_destination(), [{"id": i} for i in range(4)], batch_size=2, max_retries=1)

        assert connector.written("dest") == [{"id": 0}, {"id": 1}, {"id": 2}, {"id": 3}]

    @pytest.mark.asyncio
    async def test_failures_surface_as_load_error(self):
        connector = MemoryConnector()
        connector.load = AsyncMock(side_effect=RuntimeError("disk full"))
        loader = DestinationLoader(ConnectorRegistry([connector]))

        with pytest.raises(LoadError) as exc_info:
            await loader.load_batch(memory_destination(), [{"id": 1}])

        assert "disk full" in exc_info.value.message
        assert exc_info.value.context["records_to_load"] == 1


class TestResourceLockManager:

    @pytest.mark.asyncio
    async def test_hold_serializes_shared_resources(self):
        locks = ResourceLockManager()
        order = []

        async def job(name, resources):
            async with locks.hold(resources):
                order.append(f"{name} start")
                await asyncio.sleep(0.01)
                order.append(f"{name} end")

        await asyncio.gather(job("a", ["s1", "s2"]), job("b", ["s2", "s1"]))

        assert order in (
            ["a start", "a end", "b start", "b end"],
            ["b start", "b end", "a start", "a end"],
        )

    @pytest.mark.asyncio
    async def test_disjoint_resources_overlap(self):
        locks = ResourceLockManager()
        order = []

        async def job(name, resources):
            async with locks.hold(resources):
                order.append(f"{name} start")
                await asyncio.sleep(0.01)
                order.append(f"{name} end")

        await asyncio.gather(job("a", ["s1"]), job("b", ["s2"]))

        assert order[:2] == ["a start", "b start"]

    @pytest.mark.asyncio
    async def test_locks_released_on_error(self):
        locks = ResourceLockManager()

        with pytest.raises(RuntimeError):
            async with locks.hold(["s1"]):
                assert locks.is_locked("s1")
                raise RuntimeError("boom")

        assert not locks.is_locked("s1")
