from __future__ import annotations

import asyncio

import pytest

from app.services.errors import StateConflictError
from app.services.locks import InMemoryKeyedLock, LockTimeoutError


def test_same_key_is_serialized() -> None:
    lock = InMemoryKeyedLock(timeout=1)
    order: list[str] = []

    async def worker(name: str) -> None:
        async with lock.hold("progress:7:intro-text"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    async def scenario() -> None:
        await asyncio.gather(worker("a"), worker("b"))

    asyncio.run(scenario())
    assert order == ["a-in", "a-out", "b-in", "b-out"]


def test_different_keys_do_not_block() -> None:
    lock = InMemoryKeyedLock(timeout=0.05)

    async def scenario() -> bool:
        async with lock.hold("section:7:10"):
            async with lock.hold("course:7:1"):
                return True

    assert asyncio.run(scenario()) is True


def test_wait_times_out() -> None:
    lock = InMemoryKeyedLock(timeout=0.05)

    async def scenario() -> None:
        async with lock.hold("quiz:7:basics-quiz"):
            async with lock.hold("quiz:7:basics-quiz"):
                pass

    with pytest.raises(LockTimeoutError):
        asyncio.run(scenario())


def test_timeout_is_a_state_conflict() -> None:
    assert issubclass(LockTimeoutError, StateConflictError)


def test_idle_locks_are_dropped() -> None:
    lock = InMemoryKeyedLock(timeout=1)

    async def scenario() -> set[str]:
        async with lock.hold("progress:1:a"):
            assert lock.active_keys() == {"progress:1:a"}
        return lock.active_keys()

    assert asyncio.run(scenario()) == set()
