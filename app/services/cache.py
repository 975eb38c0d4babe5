"""Read-through cache for student progress trees.

Building a course progress tree reads the course outline plus one progress
row per material, which is the most expensive read the service does.  The
result is cached under ``progress:{student_id}:{course_id}``:

  GET  tree -> cache hit  -> return
            -> cache miss -> build from the stores -> set with TTL -> return

Every progress write for a student deletes ``progress:{student_id}:*``.
The TTL (PROGRESS_CACHE_TTL) bounds staleness if an invalidation is
ever lost, e.g. a write that commits after its delete ran.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from app.db.redis import redis_pool


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...
    async def delete(self, key: str) -> None: ...
    async def delete_pattern(self, pattern: str) -> None:
        """Delete every key matching a trailing-``*`` glob."""
        ...


def progress_cache_key(student_id: int, course_id: int) -> str:
    return f"progress:{student_id}:{course_id}"


def student_cache_pattern(student_id: int) -> str:
    return f"progress:{student_id}:*"


class InMemoryCacheService:
    """Dict-backed cache; TTLs are accepted but not enforced."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]


class RedisCacheService:
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            # PROGRESS_CACHE_TTL=0 disables caching.
            return
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN, not KEYS: KEYS blocks the server for the whole keyspace walk.
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{pattern}", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break


if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
