"""Background worker process.

RUN:  python -m app.worker

Consumes the ``aggregation_retry`` queue.  The API enqueues there when a
section or course roll-up raised after a material completion; the worker
reruns the section aggregator and then the course aggregator.  Both are
idempotent, so running a retry for state that has since been rolled up
is harmless.

A retry that fails again is re-queued with ``attempt + 1`` until
MAX_AGGREGATION_ATTEMPTS, then dropped with an error log.

Same image as the API, different command:
  api:    uvicorn app.main:app --host 0.0.0.0 --port 8000
  worker: python -m app.worker
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.core.metrics import QUEUE_DEPTH
from app.services.progress_engine import engine_scope
from app.services.task_queue import AGGREGATION_RETRY_QUEUE, task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("worker")

MAX_AGGREGATION_ATTEMPTS = 5

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


@register_handler(AGGREGATION_RETRY_QUEUE)
async def handle_aggregation_retry(payload: dict) -> None:
    student_id = int(payload["student_id"])
    section_id = int(payload["section_id"])
    course_id = int(payload["course_id"])
    attempt = int(payload.get("attempt", 1))

    try:
        async with engine_scope() as engine:
            section_done = await engine.section_aggregator.recompute_section(
                student_id, section_id
            )
            course_done = await engine.course_aggregator.recompute_course(
                student_id, course_id
            )
    except Exception:
        if attempt >= MAX_AGGREGATION_ATTEMPTS:
            logger.error(
                "Giving up on aggregation student=%s section=%s course=%s after %d attempts",
                student_id,
                section_id,
                course_id,
                attempt,
            )
            raise
        await task_queue.enqueue(AGGREGATION_RETRY_QUEUE, {**payload, "attempt": attempt + 1})
        raise

    logger.info(
        "Aggregation retry done student=%s section=%s (completed=%s) course=%s (completed=%s)",
        student_id,
        section_id,
        section_done,
        course_id,
        course_done,
    )


async def process_one(queue_name: str, timeout: int = 1) -> bool:
    """Dequeue and run a single task.  Returns False when the queue was empty."""
    task = await task_queue.dequeue(queue_name, timeout=timeout)
    if task is None:
        return False

    handler = HANDLERS[queue_name]
    try:
        await handler(task.payload)
        logger.info("Task %s on [%s] completed", task.id, queue_name)
    except Exception:
        logger.exception("Task %s on [%s] failed", task.id, queue_name)
    QUEUE_DEPTH.labels(queue_name=queue_name).set(await task_queue.queue_length(queue_name))
    return True


async def run_worker() -> None:
    queues = list(HANDLERS.keys())
    logger.info("Worker started, listening on queues: %s", queues)

    while True:
        busy = False
        for queue_name in queues:
            busy = await process_one(queue_name) or busy
        if not busy:
            # The in-memory queue returns immediately instead of blocking.
            await asyncio.sleep(1)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
