from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from progress_service.api.certificates import router as certificates_router
from progress_service.api.courses import router as courses_router
from progress_service.api.dashboard import router as dashboard_router
from progress_service.api.errors import register_error_handlers
from progress_service.api.health import router as health_router
from progress_service.api.labs import router as labs_router
from progress_service.api.metrics_endpoint import router as metrics_router
from progress_service.core.config import SETTINGS
from progress_service.core.logging import setup_logging
from progress_service.db.engine import lifespan_db
from progress_service.db.redis import lifespan_redis
from progress_service.middleware.metrics import MetricsMiddleware
from progress_service.middleware.request_context import (
    RequestContextMiddleware,
    install_request_context_filter,
)

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_request_context_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="progress-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last added runs first: RequestContext -> Metrics -> route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

register_error_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(labs_router)
app.include_router(certificates_router)
app.include_router(dashboard_router)

logger.info(
    "progress-service started  env=%s log_level=%s port=%d issuance=%s "
    "pass_threshold=%.1f docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.certificate_issuance,
    SETTINGS.lab_pass_threshold,
    "on" if SETTINGS.is_dev else "off",
)
