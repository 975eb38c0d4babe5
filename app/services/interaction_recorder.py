from __future__ import annotations

import logging
from dataclasses import replace

from app.core.clock import Clock, epoch_now, to_iso
from app.core.metrics import PROGRESS_WRITE_CONFLICTS
from app.models.interaction import InteractionEvent, to_interaction_data
from app.models.material import MaterialRef
from app.models.progress import ProgressRecord
from app.repos.catalog_repo import CourseStructure
from app.repos.progress_repo import ProgressRepo
from app.services.cache import CacheService, student_cache_pattern
from app.services.errors import NotFoundError, StateConflictError
from app.services.locks import KeyedLock, progress_key

logger = logging.getLogger(__name__)


class InteractionRecorder:
    """Creates progress records and merges interaction telemetry into them.

    Never evaluates completion; that is the ProgressUpdater's job.
    """

    def __init__(
        self,
        *,
        progress: ProgressRepo,
        structure: CourseStructure,
        locks: KeyedLock,
        cache: CacheService,
        clock: Clock = epoch_now,
        retry_attempts: int = 3,
    ) -> None:
        self._progress = progress
        self._structure = structure
        self._locks = locks
        self._cache = cache
        self._clock = clock
        self._retry_attempts = retry_attempts

    async def record_interaction(
        self,
        student_id: int,
        course_id: int,
        section_id: int,
        material: MaterialRef,
        event: InteractionEvent,
    ) -> ProgressRecord:
        await self.ensure_placement(course_id, section_id, material)
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self._locks.hold(progress_key(student_id, material)):
                    record = await self._apply(
                        student_id, course_id, section_id, material, event
                    )
                break
            except StateConflictError:
                # Another process created the record between our read and
                # insert; the next pass sees it and merges instead.
                PROGRESS_WRITE_CONFLICTS.labels(record="progress").inc()
                if attempt >= self._retry_attempts:
                    logger.warning(
                        "Interaction write conflict not resolved after %d attempts "
                        "student=%s material=%s",
                        attempt,
                        student_id,
                        material,
                    )
                    raise
                logger.info(
                    "Interaction write conflict, retrying student=%s material=%s",
                    student_id,
                    material,
                )

        await self._cache.delete_pattern(student_cache_pattern(student_id))
        logger.debug(
            "Recorded %s student=%s material=%s attempts=%d",
            event.action,
            student_id,
            material,
            record.attempts,
        )
        return record

    async def ensure_placement(
        self, course_id: int, section_id: int, material: MaterialRef
    ) -> None:
        """Raise NotFoundError unless the material is linked into the section
        and the section belongs to the course."""
        if not await self._structure.material_in_section(course_id, section_id, material):
            raise NotFoundError(
                f"material {material} is not in section {section_id} of course {course_id}"
            )

    async def _apply(
        self,
        student_id: int,
        course_id: int,
        section_id: int,
        material: MaterialRef,
        event: InteractionEvent,
    ) -> ProgressRecord:
        now = self._clock()
        data = to_interaction_data(event, to_iso(now))

        existing = await self._progress.get_for_update(student_id, material)
        if existing is None:
            record = ProgressRecord.new(
                student_id=student_id,
                course_id=course_id,
                section_id=section_id,
                material=material,
                interaction_data=data,
                now=now,
            )
            await self._progress.add(record)
            return record

        merged = dict(existing.interaction_data)
        merged.update(data)
        record = replace(
            existing,
            interaction_data=merged,
            attempts=existing.attempts + 1,
            last_accessed_at=now,
        )
        await self._progress.save(record)
        return record
