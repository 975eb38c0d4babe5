from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from app.models.progress import CourseEnrollment, EnrollmentStatus
from app.services.errors import StateConflictError


class EnrollmentRepo(Protocol):
    async def get(self, student_id: int, course_id: int) -> CourseEnrollment | None: ...
    async def list_for_course(self, course_id: int) -> list[CourseEnrollment]: ...
    async def add(self, enrollment: CourseEnrollment) -> None: ...
    async def complete_if_unset(
        self, student_id: int, course_id: int, now: int
    ) -> bool: ...
    async def serialize(self, student_id: int, course_id: int) -> None: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[int, int], CourseEnrollment] = {}

    async def get(self, student_id: int, course_id: int) -> CourseEnrollment | None:
        return self._store.get((student_id, course_id))

    async def list_for_course(self, course_id: int) -> list[CourseEnrollment]:
        return [e for e in self._store.values() if e.course_id == course_id]

    async def add(self, enrollment: CourseEnrollment) -> None:
        key = (enrollment.student_id, enrollment.course_id)
        if key in self._store:
            raise StateConflictError("enrollment already exists")
        self._store[key] = enrollment

    async def serialize(self, student_id: int, course_id: int) -> None:
        return None

    async def complete_if_unset(self, student_id: int, course_id: int, now: int) -> bool:
        key = (student_id, course_id)
        existing = self._store.get(key)
        if existing is None:
            # Completion without an enrollment row still gets recorded.
            self._store[key] = CourseEnrollment(
                student_id=student_id,
                course_id=course_id,
                status=EnrollmentStatus.COMPLETED,
                enrolled_at=now,
                completed_at=now,
            )
            return True
        if existing.completed_at is not None:
            return False
        self._store[key] = replace(
            existing, status=EnrollmentStatus.COMPLETED, completed_at=now
        )
        return True
