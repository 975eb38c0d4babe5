"""Read models over the progress store.

``course_progress`` builds the course -> section -> material tree a student
dashboard renders; ``student_analytics`` summarises a student's records,
optionally for one course; ``course_analytics`` summarises every enrolled
student of one course for staff.  All are plain dicts ready for JSON.

The tree is read-through cached per (student, course).  Writers delete
``progress:{student}:*`` after every progress change, and the TTL bounds
staleness otherwise.
"""

from __future__ import annotations

import json
import logging

from app.core.clock import Clock, epoch_now
from app.core.metrics import CACHE_OPERATIONS
from app.models.progress import EnrollmentStatus, ProgressStatus, SectionStatus
from app.repos.catalog_repo import CourseStructure, MaterialCatalog
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.progress_repo import ProgressRepo
from app.repos.section_progress_repo import SectionProgressRepo
from app.services.cache import CacheService, progress_cache_key
from app.services.errors import NotFoundError

logger = logging.getLogger(__name__)


class ProgressReporter:
    def __init__(
        self,
        *,
        catalog: MaterialCatalog,
        structure: CourseStructure,
        progress: ProgressRepo,
        sections: SectionProgressRepo,
        enrollments: EnrollmentRepo,
        cache: CacheService,
        cache_ttl: int = 300,
        clock: Clock = epoch_now,
    ) -> None:
        self._catalog = catalog
        self._structure = structure
        self._progress = progress
        self._sections = sections
        self._enrollments = enrollments
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._clock = clock

    async def course_progress(self, student_id: int, course_id: int) -> dict:
        key = progress_cache_key(student_id, course_id)
        cached = await self._cache.get(key)
        if cached is not None:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return json.loads(cached)

        CACHE_OPERATIONS.labels(operation="miss").inc()
        logger.debug("Progress tree cache miss student=%s course=%s", student_id, course_id)
        report = await self._build_course_progress(student_id, course_id)
        if self._cache_ttl > 0:
            await self._cache.set(key, json.dumps(report), self._cache_ttl)
        return report

    async def _build_course_progress(self, student_id: int, course_id: int) -> dict:
        outline = await self._structure.get_course_outline(course_id)
        if outline is None:
            raise NotFoundError(f"course {course_id} not found")

        refs = [link.material for s in outline.sections for link in s.materials]
        materials = await self._catalog.get_materials(refs)
        records = await self._progress.get_many(student_id, refs)

        total = completed = time_spent = 0
        scores: list[float] = []
        sections = []
        for section in outline.sections:
            section_row = await self._sections.get(student_id, section.section_id)
            items = []
            for link in section.materials:
                material = materials.get(link.material)
                if material is None:
                    # Dangling link; the content store no longer has it.
                    continue
                rec = records.get(link.material)
                item = {
                    "material_id": str(link.material),
                    "title": material.title,
                    "type": material.type_label,
                    "is_required": link.is_required,
                    "status": rec.status.value if rec else ProgressStatus.NOT_STARTED.value,
                    "progress_percentage": rec.progress_percentage if rec else 0.0,
                    "time_spent": rec.time_spent if rec else 0,
                    "score": rec.score if rec else None,
                    "attempts": rec.attempts if rec else 0,
                    "last_accessed_at": rec.last_accessed_at if rec else None,
                    "completed_at": rec.completed_at if rec else None,
                }
                items.append(item)
                total += 1
                time_spent += item["time_spent"]
                if item["status"] == ProgressStatus.COMPLETED.value:
                    completed += 1
                if item["score"] is not None:
                    scores.append(item["score"])

            sections.append(
                {
                    "section_id": section.section_id,
                    "title": section.title,
                    "is_required": section.is_required,
                    "status": (
                        section_row.status.value
                        if section_row
                        else SectionStatus.NOT_STARTED.value
                    ),
                    "completed_at": section_row.completed_at if section_row else None,
                    "materials": items,
                }
            )

        enrollment = await self._enrollments.get(student_id, course_id)
        return {
            "course_id": course_id,
            "course_title": outline.title,
            "enrollment_status": enrollment.status.value if enrollment else None,
            "course_completed_at": enrollment.completed_at if enrollment else None,
            "overall_progress_percentage": (
                round(completed / total * 100, 2) if total else 0.0
            ),
            "total_materials": total,
            "completed_materials": completed,
            "total_time_spent": time_spent,
            "total_time_spent_minutes": round(time_spent / 60, 2),
            "average_score": round(sum(scores) / len(scores), 2) if scores else None,
            "sections": sections,
        }

    async def student_analytics(self, student_id: int, course_id: int | None = None) -> dict:
        records = await self._progress.list_for_student(student_id, course_id)
        total = len(records)
        completed = sum(1 for r in records if r.status is ProgressStatus.COMPLETED)
        in_progress = sum(1 for r in records if r.status is ProgressStatus.IN_PROGRESS)
        scores = [r.score for r in records if r.score is not None]
        return {
            "student_id": student_id,
            "course_id": course_id,
            "total_materials": total,
            "completed_materials": completed,
            "in_progress_materials": in_progress,
            "total_time_spent_hours": round(sum(r.time_spent for r in records) / 3600, 2),
            "average_score": round(sum(scores) / len(scores), 2) if scores else None,
            "total_attempts": sum(r.attempts for r in records),
            "completion_rate": round(completed / total * 100, 2) if total else 0.0,
        }

    async def course_analytics(self, course_id: int) -> dict:
        """Totals across the progress of every student enrolled in the course.

        ``active_students_today`` counts enrolled students with any record
        touched since midnight UTC.
        """
        outline = await self._structure.get_course_outline(course_id)
        if outline is None:
            raise NotFoundError(f"course {course_id} not found")

        enrollments = await self._enrollments.list_for_course(course_id)
        enrolled = {e.student_id for e in enrollments}
        records = [
            r for r in await self._progress.list_for_course(course_id)
            if r.student_id in enrolled
        ]
        now = self._clock()
        day_start = now - now % 86400
        scores = [r.score for r in records if r.score is not None]
        time_spent = sum(r.time_spent for r in records)
        return {
            "course_id": course_id,
            "course_title": outline.title,
            "total_enrollments": len(enrollments),
            "completed_students": sum(
                1 for e in enrollments if e.status is EnrollmentStatus.COMPLETED
            ),
            "total_students": len({r.student_id for r in records}),
            "active_students_today": len(
                {
                    r.student_id
                    for r in records
                    if r.last_accessed_at is not None and r.last_accessed_at >= day_start
                }
            ),
            "total_interactions": len(records),
            "completed_materials": sum(
                1 for r in records if r.status is ProgressStatus.COMPLETED
            ),
            "average_progress": (
                round(sum(r.progress_percentage for r in records) / len(records), 2)
                if records
                else 0.0
            ),
            "total_time_spent": time_spent,
            "total_time_spent_minutes": round(time_spent / 60, 2),
            "average_score": round(sum(scores) / len(scores), 2) if scores else None,
        }
