"""
Write the working dataset to destinations in fixed-size batches
"""

from typing import List, Dict, Any, Optional
from core.exceptions import ETLException, LoadError
from schemas.entities import DataSource
from ingestion.connectors.base import ConnectorRegistry
from ingestion.retry import call_with_retries
import logging

logger = logging.getLogger(__name__)


class DestinationLoader:
    """
    Load records into a destination through its connector.

    Ensures:
    - Records are written in batch_size chunks, in order
    - truncate applies to the first chunk only, so later chunks append
    - Transient failures retry the failed chunk only, never earlier ones
    - Other connector failures surface as LoadError with the failed batch size
    """

    def __init__(self, connectors: ConnectorRegistry, retry_backoff: Optional[float] = None):
        self.connectors = connectors
        self.retry_backoff = retry_backoff

    async def load_batch(
        self,
        destination: DataSource,
        records: List[Dict[str, Any]],
        batch_size: int = 1000,
        truncate: bool = False,
        max_retries: int = 0
    ) -> int:
        """
        Load records in batches.

        Args:
            destination: Destination data source
            records: Records to write
            batch_size: Number of records per batch
            truncate: Replace existing destination content
            max_retries: Extra attempts per batch on retryable errors

        Returns:
            Total number of records loaded
        """
        connector = self.connectors.get(destination.type)
        total_loaded = 0

        if not records:
            if truncate:
                await self._write(connector, destination, [], True, max_retries, "truncate")
            return 0

        for i in range(0, len(records), batch_size):
            batch = records[i:i + batch_size]
            batch_number = i // batch_size + 1
            count = await self._write(
                connector, destination, batch, truncate and i == 0, max_retries, f"batch {batch_number}"
            )
            total_loaded += count
            logger.debug(f"Batch {batch_number}: Loaded {count} records into {destination.name}")

        return total_loaded

    async def _write(self, connector, destination, batch, truncate, max_retries, label) -> int:
        try:
            return await call_with_retries(
                lambda: connector.load(destination, batch, truncate=truncate),
                max_retries=max_retries,
                description=f"Load {label} into {destination.name}",
                backoff=self.retry_backoff,
            )
        except LoadError:
            raise
        except ETLException as e:
            raise LoadError(
                f"Failed to load into {destination.name}: {e.message}",
                context={"destination_id": destination.id, "records_to_load": len(batch)},
                original_exception=e
            )
        except Exception as e:
            raise LoadError(
                f"Failed to load into {destination.name}: {str(e)}",
                context={"destination_id": destination.id, "records_to_load": len(batch)},
                original_exception=e
            )
