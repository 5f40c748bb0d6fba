import asyncio
import logging
from typing import Dict, List, Optional
from pydantic import BaseModel
from storage.base import StateStore, EntityKind

logger = logging.getLogger(__name__)


class InMemoryStore(StateStore):
    """Process-lifetime store. Entities are deep-copied in and out."""

    def __init__(self):
        self._data: Dict[EntityKind, Dict[str, BaseModel]] = {kind: {} for kind in EntityKind}
        self._lock = asyncio.Lock()

    async def put(self, kind: EntityKind, entity: BaseModel) -> BaseModel:
        async with self._lock:
            self._data[kind][entity.id] = entity.model_copy(deep=True)
        return entity

    async def get(self, kind: EntityKind, entity_id: str) -> Optional[BaseModel]:
        entity = self._data[kind].get(entity_id)
        return entity.model_copy(deep=True) if entity is not None else None

    async def list(self, kind: EntityKind) -> List[BaseModel]:
        return [entity.model_copy(deep=True) for entity in list(self._data[kind].values())]

    async def delete(self, kind: EntityKind, entity_id: str) -> bool:
        async with self._lock:
            return self._data[kind].pop(entity_id, None) is not None

    async def close(self) -> None:
        logger.debug("In-memory store closed")
