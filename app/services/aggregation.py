"""Section and course roll-up.

Both aggregators recompute from scratch and are idempotent: running one
twice, or concurrently with itself, leaves the same state as running it
once.  Completion is forward-only; a completed_at once written is kept.

  material COMPLETED -> SectionAggregator.recompute_section
                     -> CourseAggregator.recompute_course

A section with no required materials, or a course with no required
sections, never completes.
"""

from __future__ import annotations

import logging
from typing import Protocol

from app.core.clock import Clock, epoch_now
from app.core.metrics import AGGREGATION_COMPLETIONS
from app.models.progress import EnrollmentStatus, SectionStatus
from app.repos.catalog_repo import CourseStructure
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.progress_repo import ProgressRepo
from app.repos.section_progress_repo import SectionProgressRepo
from app.services.locks import KeyedLock, course_key, section_key

logger = logging.getLogger(__name__)


class CompletionStore(Protocol):
    async def complete_if_unset(self, student_id: int, target_id: int, now: int) -> bool:
        """Atomically mark (student, target) completed unless already completed.

        Creates the row when missing.  Returns True only for the write that
        set completed_at.
        """
        ...


async def upsert_if_uncompleted(
    store: CompletionStore, student_id: int, target_id: int, now: int
) -> bool:
    return await store.complete_if_unset(student_id, target_id, now)


class SectionAggregator:
    def __init__(
        self,
        *,
        structure: CourseStructure,
        progress: ProgressRepo,
        sections: SectionProgressRepo,
        locks: KeyedLock,
        clock: Clock = epoch_now,
    ) -> None:
        self._structure = structure
        self._progress = progress
        self._sections = sections
        self._locks = locks
        self._clock = clock

    async def recompute_section(self, student_id: int, section_id: int) -> bool:
        """Return True when the section is completed for the student."""
        async with self._locks.hold(section_key(student_id, section_id)):
            await self._sections.serialize(student_id, section_id)
            existing = await self._sections.get(student_id, section_id)
            if existing is not None and existing.status is SectionStatus.COMPLETED:
                return True

            required = await self._structure.get_required_material_ids(section_id)
            if required:
                done = await self._progress.count_completed(student_id, required)
                if done >= len(required):
                    if await upsert_if_uncompleted(
                        self._sections, student_id, section_id, self._clock()
                    ):
                        AGGREGATION_COMPLETIONS.labels(level="section").inc()
                        logger.info(
                            "Section completed student=%s section=%s (%d/%d)",
                            student_id,
                            section_id,
                            done,
                            len(required),
                            extra={"student_id": student_id, "section_id": section_id},
                        )
                    return True

            if await self._progress.count_in_section(student_id, section_id):
                await self._sections.mark_started(student_id, section_id, self._clock())
            return False


class CourseAggregator:
    def __init__(
        self,
        *,
        structure: CourseStructure,
        sections: SectionProgressRepo,
        enrollments: EnrollmentRepo,
        locks: KeyedLock,
        clock: Clock = epoch_now,
    ) -> None:
        self._structure = structure
        self._sections = sections
        self._enrollments = enrollments
        self._locks = locks
        self._clock = clock

    async def recompute_course(self, student_id: int, course_id: int) -> bool:
        """Return True when the course is completed for the student."""
        async with self._locks.hold(course_key(student_id, course_id)):
            await self._enrollments.serialize(student_id, course_id)
            enrollment = await self._enrollments.get(student_id, course_id)
            if enrollment is not None and enrollment.status is EnrollmentStatus.COMPLETED:
                return True

            required = await self._structure.get_required_section_ids(course_id)
            if not required:
                return False
            done = await self._sections.count_completed(student_id, required)
            if done < len(required):
                return False

            if await upsert_if_uncompleted(
                self._enrollments, student_id, course_id, self._clock()
            ):
                AGGREGATION_COMPLETIONS.labels(level="course").inc()
                logger.info(
                    "Course completed student=%s course=%s",
                    student_id,
                    course_id,
                    extra={"student_id": student_id, "course_id": course_id},
                )
            return True
