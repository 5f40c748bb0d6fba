"""
Retry helper for units of pipeline work (one source extraction, one load batch)
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional
from core.config import settings
from core.exceptions import RetryableError, RateLimitError
import logging

logger = logging.getLogger(__name__)


async def call_with_retries(
    operation: Callable[[], Awaitable[Any]],
    max_retries: int,
    description: str,
    backoff: Optional[float] = None,
) -> Any:
    """
    Await `operation()`, retrying RetryableError up to `max_retries` extra times.

    Delays grow exponentially from `backoff` (RETRY_BACKOFF_SECONDS by default);
    a RateLimitError's retry_after takes precedence. Any other exception is
    raised immediately.
    """
    base_delay = settings.RETRY_BACKOFF_SECONDS if backoff is None else backoff
    attempt = 0

    while True:
        try:
            return await operation()
        except RetryableError as e:
            if attempt >= max_retries:
                raise
            delay = base_delay * (2 ** attempt)
            if isinstance(e, RateLimitError) and e.retry_after:
                delay = e.retry_after
            attempt += 1
            logger.warning(
                f"{description} failed ({e.message}). "
                f"Retrying in {delay} seconds (attempt {attempt}/{max_retries})"
            )
            await asyncio.sleep(delay)
