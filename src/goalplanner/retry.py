"""Retry with exponential backoff for transient datastore failures."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    base_delay: float,
    retry_on: tuple[type[BaseException], ...],
    name: str,
) -> T:
    """Run ``operation`` up to ``attempts`` times, doubling the delay after each failure.

    The last exception is re-raised once attempts are exhausted. Exceptions
    outside ``retry_on`` propagate immediately.
    """
    delay = base_delay
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= attempts:
                logger.error("retry_exhausted", operation=name, attempts=attempts, error=str(exc))
                raise
            logger.warning(
                "retry_scheduled",
                operation=name,
                attempt=attempt,
                delay_seconds=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)
            delay *= 2
    msg = "attempts must be >= 1"
    raise ValueError(msg)
