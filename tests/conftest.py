from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.services import token_service
from app.services.cache import InMemoryCacheService, cache_service
from app.services.locks import InMemoryKeyedLock, keyed_lock
from app.services.progress_engine import (
    InMemoryStores,
    ProgressEngine,
    build_engine,
    memory_stores,
)
from app.services.task_queue import InMemoryTaskQueue, task_queue

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

START = 1_760_000_000


class FakeClock:
    """Deterministic epoch clock; advance() moves it forward."""

    def __init__(self, now: int = START) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_memory_stores() -> None:
    """Fresh progress store with the sample course for every test."""
    memory_stores.reset()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_locks() -> None:
    if hasattr(keyed_lock, "_locks"):
        keyed_lock._locks.clear()  # type: ignore[union-attr]
        keyed_lock._users.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stores() -> InMemoryStores:
    return InMemoryStores()


@pytest.fixture
def queue() -> InMemoryTaskQueue:
    return InMemoryTaskQueue()


@pytest.fixture
def cache() -> InMemoryCacheService:
    return InMemoryCacheService()


@pytest.fixture
def engine(
    stores: InMemoryStores,
    clock: FakeClock,
    queue: InMemoryTaskQueue,
    cache: InMemoryCacheService,
) -> ProgressEngine:
    """A progress engine over private in-memory stores and a fake clock."""
    return build_engine(
        stores.as_stores(),
        locks=InMemoryKeyedLock(timeout=2),
        cache=cache,
        queue=queue,
        clock=clock,
        retry_attempts=3,
        cache_ttl=300,
    )


def mint_token(sub: str = "42", roles: list[str] | None = None) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=sub, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
