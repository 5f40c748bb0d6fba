"""
REST API connector with retry logic and exponential backoff.

- 5xx responses, timeouts and transport errors are retried with exponential
  backoff and surface as NetworkError once attempts are exhausted
- 429 honors Retry-After and surfaces as RateLimitError
- 401/403 (AuthenticationError) and 404 (EndpointNotFoundError) are not retried
"""

import httpx
import asyncio
import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import List, Dict, Any, Optional
from core.config import settings
from core.exceptions import (
    APIConnectorError,
    NetworkError,
    RateLimitError,
    AuthenticationError,
    EndpointNotFoundError,
    LoadError,
    RetryableError,
)
from models.base import DataSourceType
from schemas.configs import ExtractionConfig
from schemas.entities import DataSource
from ingestion.connectors.base import DataConnector, Record, apply_extraction
import logging

logger = logging.getLogger(__name__)


def parse_retry_after(value: Optional[str], default: float) -> float:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date)."""
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(0.0, seconds) if math.isfinite(seconds) else default
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())


class ApiConnector(DataConnector):
    """
    Extract from and load into REST endpoints.

    Attributes:
        max_retries: Maximum number of attempts per request (default: 3)
        retry_delay: Initial retry delay in seconds (default: RETRY_BACKOFF_SECONDS)
        transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
    """

    source_type = DataSourceType.API

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.max_retries = max(1, max_retries)
        self.retry_delay = settings.RETRY_BACKOFF_SECONDS if retry_delay is None else retry_delay
        self.transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    async def _request_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic and exponential backoff.

        Raises:
            AuthenticationError / EndpointNotFoundError: non-retryable responses
            RateLimitError / NetworkError: retryable failures after max retries
            APIConnectorError: any other unexpected failure
        """
        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            delay = self.retry_delay * (2 ** attempt)

            try:
                logger.debug(f"{method} attempt {attempt + 1}/{self.max_retries} to {url}")
                response = await client.request(method, url, **kwargs)
            except httpx.TimeoutException as e:
                if last_attempt:
                    raise NetworkError(
                        f"Request timeout after {self.max_retries} retries",
                        context={"api_url": url, "retry_count": attempt + 1},
                        original_exception=e
                    )
                logger.warning(f"Request timeout. Retrying in {delay} seconds")
                await asyncio.sleep(delay)
                continue
            except httpx.TransportError as e:
                if last_attempt:
                    raise NetworkError(
                        f"Network error after {self.max_retries} retries",
                        context={"api_url": url, "retry_count": attempt + 1},
                        original_exception=e
                    )
                logger.warning(f"Network error. Retrying in {delay} seconds")
                await asyncio.sleep(delay)
                continue

            if response.status_code in (401, 403):
                raise AuthenticationError(
                    f"Authentication failed for {url}",
                    context={"status_code": response.status_code, "api_url": url}
                )

            if response.status_code == 404:
                raise EndpointNotFoundError(
                    f"Resource not found: {url}",
                    context={"status_code": 404, "api_url": url}
                )

            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"), delay)
                if last_attempt:
                    raise RateLimitError(
                        f"Rate limit exceeded for {url}",
                        context={"status_code": 429, "api_url": url, "retry_count": attempt + 1},
                        retry_after=retry_after
                    )
                logger.warning(f"Rate limited. Retrying after {retry_after} seconds")
                await asyncio.sleep(retry_after)
                continue

            if response.status_code >= 500:
                if last_attempt:
                    raise NetworkError(
                        f"Server error after {self.max_retries} retries",
                        context={
                            "status_code": response.status_code,
                            "api_url": url,
                            "retry_count": attempt + 1,
                            "response_body": response.text[:500]
                        }
                    )
                logger.warning(
                    f"Server error {response.status_code}. "
                    f"Retrying in {delay} seconds (attempt {attempt + 1}/{self.max_retries})"
                )
                await asyncio.sleep(delay)
                continue

            if response.status_code >= 400:
                raise APIConnectorError(
                    f"Request to {url} failed with status {response.status_code}",
                    context={"status_code": response.status_code, "api_url": url}
                )

            return response

        raise APIConnectorError("Max retries exceeded", context={"api_url": url})

    async def probe(self, source: DataSource) -> Dict[str, Any]:
        config = source.config
        async with self._client(config.timeout) as client:
            response = await self._request_with_retry(
                client, config.method, config.url, headers=config.headers, params=config.params
            )
        return {
            "type": source.type.value,
            "url": config.url,
            "method": config.method,
            "status_code": response.status_code,
        }

    async def extract(self, source: DataSource, extraction: Optional[ExtractionConfig] = None) -> List[Record]:
        config = source.config
        async with self._client(config.timeout) as client:
            response = await self._request_with_retry(
                client, config.method, config.url, headers=config.headers, params=config.params
            )

        try:
            data = response.json()
        except ValueError as e:
            raise APIConnectorError(
                "Failed to parse JSON response",
                context={"api_url": config.url, "response_body": response.text[:500]},
                original_exception=e
            )

        # Handle different API response formats
        if isinstance(data, list):
            records = data
        elif isinstance(data, dict) and config.records_path:
            records = data.get(config.records_path, [])
        elif isinstance(data, dict):
            records = data.get("data", data.get("results", []))
        else:
            records = []

        logger.info(f"Fetched {len(records)} records from {config.url}")
        return apply_extraction(records, extraction or source.extraction)

    async def load(self, destination: DataSource, records: List[Record], truncate: bool = False) -> int:
        if not records:
            return 0

        config = destination.config
        if truncate:
            logger.debug(f"Truncate is not supported for API destination {destination.name}, appending")

        method = config.method if config.method in ("POST", "PUT", "PATCH") else "POST"
        try:
            async with self._client(config.timeout) as client:
                await self._request_with_retry(
                    client, method, config.url, headers=config.headers, json=records
                )
        except RetryableError:
            raise
        except APIConnectorError as e:
            raise LoadError(
                f"Failed to send {len(records)} records to {config.url}: {e.message}",
                context={"destination_id": destination.id, "records_to_load": len(records)},
                original_exception=e
            )
        return len(records)
