"""
Per-DataSource mutual exclusion for concurrently executing jobs
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Iterable, AsyncIterator
import logging

logger = logging.getLogger(__name__)


class ResourceLockManager:
    """
    Hands out one asyncio.Lock per data source id.

    `hold(ids)` acquires every lock a job needs in sorted id order, so two
    jobs sharing data sources can never deadlock on each other.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, resource_id: str) -> asyncio.Lock:
        return self._locks.setdefault(resource_id, asyncio.Lock())

    def is_locked(self, resource_id: str) -> bool:
        lock = self._locks.get(resource_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, resource_ids: Iterable[str]) -> AsyncIterator[None]:
        acquired = []
        try:
            for resource_id in sorted(set(resource_ids)):
                lock = self.lock_for(resource_id)
                if lock.locked():
                    logger.debug(f"Waiting for data source {resource_id}")
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
