"""Health and readiness endpoints.

  /health (liveness): the process answers; always 200.  The body reports
    each backing service as ok, degraded or not_configured.
  /ready (readiness): 503 while a configured backing service is
    unreachable, so the load balancer stops routing progress writes here
    until it recovers.  Unconfigured services use in-memory fallbacks and
    never block readiness.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from sqlalchemy import text

from app.db import engine as db
from app.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception as e:
        logger.warning("Redis health check failed: %s", e.__class__.__name__)
        return "degraded"
    return "ok"


async def _check_database() -> str:
    if db.engine is None:
        return "not_configured"
    try:
        async with db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Database health check failed: %s", e.__class__.__name__)
        return "degraded"
    return "ok"


async def _checks() -> dict[str, str]:
    return {"database": await _check_database(), "redis": await _check_redis()}


@router.get("/health")
async def health() -> dict:
    """Liveness probe plus dependency status; 200 even when degraded."""
    checks = await _checks()
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    checks = await _checks()
    if "degraded" in checks.values():
        logger.warning("Not ready: %s", checks)
        return Response(status_code=503)
    return Response(status_code=200)
