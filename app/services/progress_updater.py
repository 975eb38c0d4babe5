"""Progress updates and completion roll-up.

``update_progress`` is the single place a ProgressRecord's percentage,
time, score and status change.  The read-modify-write runs under the
per-(student, material) lock; on PostgreSQL the row is also read with
SELECT ... FOR UPDATE.

When the update moves a record into COMPLETED, the section aggregator
and then the course aggregator run for the record's section and course.
A failing aggregation never fails the update: the material write is
kept, the failure is logged and counted, and an ``aggregation_retry``
task is queued for the worker.  With a retry outbox the task is held
until ``flush_retries``, which the engine scope calls after commit, so
the worker never reads state older than the write that queued it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager, nullcontext
from dataclasses import replace

from app.core.clock import Clock, epoch_now
from app.core.metrics import AGGREGATION_FAILURES, MATERIAL_COMPLETIONS
from app.models.material import DEFAULT_PASSING_SCORE, MaterialRef
from app.models.progress import ProgressRecord, ProgressStatus
from app.repos.catalog_repo import MaterialCatalog
from app.repos.progress_repo import ProgressRepo
from app.services.aggregation import CourseAggregator, SectionAggregator
from app.services.cache import CacheService, student_cache_pattern
from app.services.completion import clamp_percentage, is_complete
from app.services.errors import ValidationError
from app.services.locks import KeyedLock, progress_key
from app.services.task_queue import AGGREGATION_RETRY_QUEUE, TaskQueue

logger = logging.getLogger(__name__)

Savepoint = Callable[[], AbstractAsyncContextManager]


class ProgressUpdater:
    def __init__(
        self,
        *,
        progress: ProgressRepo,
        catalog: MaterialCatalog,
        section_aggregator: SectionAggregator,
        course_aggregator: CourseAggregator,
        locks: KeyedLock,
        cache: CacheService,
        queue: TaskQueue,
        clock: Clock = epoch_now,
        savepoint: Savepoint = nullcontext,
        retry_outbox: list[dict] | None = None,
    ) -> None:
        self._progress = progress
        self._catalog = catalog
        self._sections = section_aggregator
        self._courses = course_aggregator
        self._locks = locks
        self._cache = cache
        self._queue = queue
        self._clock = clock
        self._savepoint = savepoint
        self._retry_outbox = retry_outbox

    async def update_progress(
        self,
        student_id: int,
        material: MaterialRef,
        progress_percentage: float,
        time_spent_delta: int = 0,
        score: float | None = None,
    ) -> bool:
        """Apply progress to an existing record.

        Returns False, with no write, when the student has no record for
        the material yet.  Raises ValidationError for a negative time delta.
        """
        if time_spent_delta < 0:
            raise ValidationError(
                "time_spent must be >= 0", field="time_spent"
            )
        progress_percentage = clamp_percentage(progress_percentage)
        if score is not None:
            score = clamp_percentage(score)

        async with self._locks.hold(progress_key(student_id, material)):
            record = await self._progress.get_for_update(student_id, material)
            if record is None:
                logger.debug(
                    "No progress record to update student=%s material=%s",
                    student_id,
                    material,
                )
                return False

            updated, became_complete, type_label = await self._apply(
                record, progress_percentage, time_spent_delta, score
            )
            await self._progress.save(updated)

        await self._cache.delete_pattern(student_cache_pattern(student_id))

        if became_complete:
            MATERIAL_COMPLETIONS.labels(content_type=type_label).inc()
            logger.info(
                "Material completed student=%s material=%s type=%s",
                student_id,
                material,
                type_label,
                extra={"student_id": student_id, "material_id": str(material)},
            )
            await self.aggregate(student_id, updated.section_id, updated.course_id)
        return True

    async def _apply(
        self,
        record: ProgressRecord,
        progress_percentage: float,
        time_spent_delta: int,
        score: float | None,
    ) -> tuple[ProgressRecord, bool, str]:
        now = self._clock()
        material = await self._catalog.get_material(record.material)
        if material is None:
            logger.warning(
                "Material %s not in catalog, applying default completion rule",
                record.material,
            )
            content_type, passing, type_label = None, DEFAULT_PASSING_SCORE, "unknown"
        else:
            content_type = material.content_type
            passing = material.passing_score
            type_label = material.type_label

        new_score = score if score is not None else record.score
        changes: dict[str, object] = {
            "time_spent": record.time_spent + time_spent_delta,
            "score": new_score,
            "last_accessed_at": now,
        }

        if record.is_completed:
            # Completion is forward-only.
            changes["progress_percentage"] = max(
                record.progress_percentage, progress_percentage
            )
            return replace(record, **changes), False, type_label

        changes["progress_percentage"] = progress_percentage
        if is_complete(content_type, progress_percentage, new_score, passing):
            changes["status"] = ProgressStatus.COMPLETED
            changes["completed_at"] = record.completed_at or now
            return replace(record, **changes), True, type_label

        if progress_percentage > 0:
            changes["status"] = ProgressStatus.IN_PROGRESS
        return replace(record, **changes), False, type_label

    async def aggregate(self, student_id: int, section_id: int, course_id: int) -> None:
        """Roll completion up to the section and then the course.

        Failures are queued for retry rather than raised.
        """
        level = "section"
        try:
            async with self._savepoint():
                await self._sections.recompute_section(student_id, section_id)
            level = "course"
            async with self._savepoint():
                await self._courses.recompute_course(student_id, course_id)
        except Exception:
            AGGREGATION_FAILURES.labels(level=level).inc()
            logger.exception(
                "%s aggregation failed student=%s section=%s course=%s, queuing retry",
                level.capitalize(),
                student_id,
                section_id,
                course_id,
            )
            await self._queue_retry(student_id, section_id, course_id)

    async def _queue_retry(self, student_id: int, section_id: int, course_id: int) -> None:
        payload = {
            "student_id": student_id,
            "section_id": section_id,
            "course_id": course_id,
            "attempt": 1,
        }
        if self._retry_outbox is not None:
            self._retry_outbox.append(payload)
            return
        await self._enqueue_retry(payload)

    async def flush_retries(self) -> None:
        """Queue every retry held in the outbox."""
        if not self._retry_outbox:
            return
        pending = list(self._retry_outbox)
        self._retry_outbox.clear()
        for payload in pending:
            await self._enqueue_retry(payload)

    async def _enqueue_retry(self, payload: dict) -> None:
        try:
            await self._queue.enqueue(AGGREGATION_RETRY_QUEUE, payload)
        except Exception:
            logger.exception(
                "Could not queue aggregation retry student=%s section=%s",
                payload["student_id"],
                payload["section_id"],
            )
