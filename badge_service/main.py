from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from badge_service.api.badges import router as badges_router
from badge_service.api.health import router as health_router
from badge_service.core.config import SETTINGS
from badge_service.core.logging import setup_logging
from badge_service.db.engine import lifespan_db
from badge_service.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db():
        yield


# only app setup + router registration

app = FastAPI(
    title="badge-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(RequestContextMiddleware)

app.include_router(health_router)
app.include_router(badges_router)

logger.info(
    "badge-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
