"""Background worker process.

RUN:  python -m progress_service.worker

Consumes two queues:

  certificate_issuance     - {kind, user_id, course_id|lab_id, grade?}
                             produced by the certification trigger when
                             CERTIFICATE_ISSUANCE=queued
  progress_reconciliation  - {user_id, course_id}
                             re-derives one enrollment from its completions
                             and backfills a missing course certificate

Each task runs in its own unit of work.  A failed task is logged and
dropped; both queues are safe to re-enqueue by hand since issuance of the
course certificate and reconciliation are idempotent.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable, Coroutine
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

from progress_service.core.config import SETTINGS
from progress_service.core.errors import ValidationError
from progress_service.core.logging import setup_logging
from progress_service.db.engine import async_session_factory, session_scope
from progress_service.repos.stores import MEMORY_STORES, Stores, pg_stores
from progress_service.services.certification import CertificateIssuer
from progress_service.services.progress import ProgressService
from progress_service.services.task_queue import (
    CERTIFICATE_ISSUANCE_QUEUE,
    PROGRESS_RECONCILIATION_QUEUE,
    task_queue,
)

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("progress_service.worker")


@asynccontextmanager
async def unit_of_work() -> AsyncGenerator[Stores, None]:
    if async_session_factory is None:
        yield MEMORY_STORES
        return
    async with session_scope() as session:
        yield pg_stores(session)


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


@register_handler(CERTIFICATE_ISSUANCE_QUEUE)
async def handle_certificate_issuance(payload: dict) -> None:
    async with unit_of_work() as stores:
        cert = await CertificateIssuer(stores.certificates).issue_from_payload(payload)
    if cert is None:
        logger.info("Issuance skipped, certificate already exists payload=%s", payload)


@register_handler(PROGRESS_RECONCILIATION_QUEUE)
async def handle_progress_reconciliation(payload: dict) -> None:
    try:
        user_id = UUID(str(payload["user_id"]))
        course_id = UUID(str(payload["course_id"]))
    except (KeyError, ValueError) as exc:
        raise ValidationError(f"malformed reconciliation payload: {exc}") from exc

    async with unit_of_work() as stores:
        result = await ProgressService(stores).reconcile(user_id, course_id)
    if result.certificate is not None:
        logger.info(
            "Reconciliation backfilled certificate=%s user=%s course=%s",
            result.certificate.id,
            user_id,
            course_id,
        )


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------


async def process_one(queue_name: str, timeout: int = 1) -> bool:
    """Dequeue and run at most one task.  Returns True if a task was taken."""
    task = await task_queue.dequeue(queue_name, timeout=timeout)
    if task is None:
        return False

    handler = HANDLERS[queue_name]
    try:
        await handler(task.payload)
        logger.info("Task %s on [%s] completed", task.id, queue_name)
    except Exception:
        logger.exception("Task %s on [%s] failed", task.id, queue_name)
    return True


async def run_worker() -> None:
    """Poll all registered queues round-robin and dispatch tasks."""
    queues = list(HANDLERS.keys())
    logger.info("Worker started, listening on queues: %s", queues)

    while True:
        taken = [await process_one(queue_name) for queue_name in queues]
        if not any(taken):
            # The in-memory queue returns immediately when empty
            await asyncio.sleep(0.5)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
