"""Per-key mutual exclusion for progress writes.

Every read-modify-write of a ProgressRecord holds ``progress:{s}:{m}``;
quiz attempt numbering holds ``quiz:{s}:{m}``; the aggregators hold
``section:{s}:{sec}`` and ``course:{s}:{c}``.  Keys never nest on the same
name, so a holder never waits on itself.

In-memory locks only serialize one process.  With REDIS_URL set, the
redis-py Lock is used so several API instances and the worker share them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from redis.exceptions import LockError

from app.core.config import SETTINGS
from app.db.redis import redis_pool
from app.models.material import MaterialRef
from app.services.errors import StateConflictError

logger = logging.getLogger(__name__)


def progress_key(student_id: int, material: MaterialRef) -> str:
    return f"progress:{student_id}:{material}"


def quiz_key(student_id: int, material: MaterialRef) -> str:
    return f"quiz:{student_id}:{material}"


def section_key(student_id: int, section_id: int) -> str:
    return f"section:{student_id}:{section_id}"


def course_key(student_id: int, course_id: int) -> str:
    return f"course:{student_id}:{course_id}"


class LockTimeoutError(StateConflictError):
    """The lock stayed held by someone else for the whole wait."""


class KeyedLock(Protocol):
    def hold(self, key: str) -> AbstractAsyncContextManager[None]: ...


class InMemoryKeyedLock:
    def __init__(self, timeout: float) -> None:
        self._timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                async with asyncio.timeout(self._timeout):
                    await lock.acquire()
            except TimeoutError:
                raise LockTimeoutError(f"timed out waiting for {key}") from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                # Nobody holds or waits on it; drop it so the map stays small.
                del self._users[key]
                del self._locks[key]

    def active_keys(self) -> set[str]:
        return set(self._locks)


class RedisKeyedLock:
    _PREFIX = "lock:"

    def __init__(self, redis_client, timeout: float) -> None:
        self._redis = redis_client
        self._timeout = timeout

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        # The lock auto-expires after `timeout` so a crashed holder cannot
        # wedge the key; waiting is bounded by the same value.
        lock = self._redis.lock(
            f"{self._PREFIX}{key}",
            timeout=self._timeout,
            blocking_timeout=self._timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            raise LockTimeoutError(f"timed out waiting for {key}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                logger.warning("Lock %s expired before release", key)


if redis_pool is not None:
    keyed_lock: KeyedLock = RedisKeyedLock(redis_pool, SETTINGS.lock_timeout_seconds)
else:
    keyed_lock = InMemoryKeyedLock(SETTINGS.lock_timeout_seconds)
