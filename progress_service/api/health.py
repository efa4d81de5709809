"""Liveness and readiness.

/health answers 200 whenever the process can respond; the body reports
each backing service as ok, degraded or not_configured, plus the depth
of every task queue (null when it cannot be read).  /ready returns
503 when the database is configured but unreachable, since no write path
works without it.  Redis is not critical: with it down, queued
certificate issuance fails and is counted, but progress still records.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from progress_service.db import engine as db_engine
from progress_service.db.redis import redis_pool
from progress_service.services.task_queue import (
    CERTIFICATE_ISSUANCE_QUEUE,
    PROGRESS_RECONCILIATION_QUEUE,
    task_queue,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
        return "ok"
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"


async def _check_database() -> str:
    if db_engine.engine is None:
        return "not_configured"
    try:
        async with db_engine.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"


async def _queue_depths() -> dict[str, int | None]:
    depths: dict[str, int | None] = {}
    for queue in (CERTIFICATE_ISSUANCE_QUEUE, PROGRESS_RECONCILIATION_QUEUE):
        try:
            depths[queue] = await task_queue.queue_length(queue)
        except Exception:
            logger.warning("Queue depth check failed for %s", queue, exc_info=True)
            depths[queue] = None
    return depths


@router.get("/health")
async def health() -> dict:
    checks = {
        "redis": await _check_redis(),
        "database": await _check_database(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks, "queues": await _queue_depths()}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
