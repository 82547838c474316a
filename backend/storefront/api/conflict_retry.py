"""Conflict Retry — re-run an operation once after a ConsistencyConflictError.

Invariants:
    - At most two attempts; the second failure propagates to the error handler
    - Only ConsistencyConflictError is retried; every other error surfaces at once
    - Each attempt re-reads state (services open a fresh transaction per call)
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from storefront.core.errors import ConsistencyConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 2


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]], owner_id: str,
) -> T:
    """Await operation(); on a conflict, try once more with fresh state."""
    attempt = 1
    while True:
        try:
            return await operation()
        except ConsistencyConflictError as e:
            if attempt >= MAX_ATTEMPTS:
                raise
            logger.warning(
                f"Consistency conflict for owner {owner_id}, retrying: {e.message}",
                extra={
                    "owner_id": owner_id,
                    "record_id": e.context.record_id,
                    "attempt": attempt,
                },
            )
            attempt += 1
