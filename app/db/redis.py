"""Redis connection pool.

Redis backs three shared-state concerns of the progress service:

  - the read-through cache of student progress trees
  - the ``aggregation_retry`` task queue consumed by the worker
  - cross-process locks serializing writes per (student, material)

Each consumer checks ``redis_pool`` for None and falls back to an
in-process implementation, so a single API process runs without Redis.
Those fallbacks only coordinate within one process; run Redis whenever
more than one API instance writes progress.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Ping on startup, close the pool on shutdown.

    A failed ping is logged but does not stop the app; requests that need
    Redis then fail individually and /ready reports the outage.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured, cache/queue/locks are in-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected")
    except Exception:
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
