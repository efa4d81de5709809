"""Bounded retry for idempotent store operations.

Only wrap calls that are safe to repeat (upserts, set-field updates,
reads).  Inserts that would duplicate a row on replay must not go through
here.  The Postgres repos run every retried write inside a SAVEPOINT, so
a failed attempt rolls back only itself and the next one does not land
in an aborted transaction.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from progress_service.core.config import SETTINGS
from progress_service.core.metrics import STORE_RETRIES

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    RedisConnectionError,
    ConnectionError,
    TimeoutError,
)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    what: str,
    attempts: int | None = None,
    backoff_ms: int | None = None,
) -> T:
    """Run ``operation`` up to ``attempts`` times on transient errors.

    Backoff doubles after each failure.  The last error propagates.
    """
    max_attempts = attempts if attempts is not None else SETTINGS.store_retry_attempts
    delay_ms = backoff_ms if backoff_ms is not None else SETTINGS.store_retry_backoff_ms

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except TRANSIENT_ERRORS as exc:
            if attempt >= max_attempts:
                logger.error(
                    "Store operation %s failed after %d attempts: %s",
                    what,
                    attempt,
                    exc,
                )
                raise
            STORE_RETRIES.labels(operation=what).inc()
            logger.warning(
                "Transient failure in %s (attempt %d/%d): %s",
                what,
                attempt,
                max_attempts,
                exc,
            )
            await asyncio.sleep(delay_ms * (2 ** (attempt - 1)) / 1000)

    raise RuntimeError("unreachable: retry loop exited without result")
