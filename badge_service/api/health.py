"""Health, readiness and metrics endpoints.

  /health (liveness):  is the process alive?  Always 200 while it can
    answer; the body reports per-dependency status.
  /ready (readiness):  can this instance serve traffic?  503 when the
    configured database cannot be reached, so the load balancer stops
    routing here without restarting the container.
  /metrics:  Prometheus text exposition of core/metrics.py.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from badge_service.db import engine as db_engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["observability"])


async def _database_status() -> str:
    if db_engine.engine is None:
        return "not_configured"
    try:
        async with db_engine.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database check failed: %s", exc)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    """Liveness probe + dependency status.

    Returns 200 even when degraded; the status field tells the caller.
    """
    checks = {"database": await _database_status()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    """Readiness probe: 503 when a configured database is unreachable."""
    if await _database_status() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
