"""PostgreSQL implementation of EnrollmentRepo (the course_student table)."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CourseStudentRow
from app.models.progress import CourseEnrollment, EnrollmentStatus
from app.repos.pg_errors import insert_savepoint, storage_errors


class PgEnrollmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: int, course_id: int) -> CourseEnrollment | None:
        stmt = select(CourseStudentRow).where(
            CourseStudentRow.student_id == student_id,
            CourseStudentRow.course_id == course_id,
        )
        async with storage_errors("enrollment read"):
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def list_for_course(self, course_id: int) -> list[CourseEnrollment]:
        stmt = select(CourseStudentRow).where(CourseStudentRow.course_id == course_id)
        async with storage_errors("enrollment read"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def add(self, enrollment: CourseEnrollment) -> None:
        row = CourseStudentRow(
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            status=enrollment.status.value,
            enrolled_at=enrollment.enrolled_at,
            completed_at=enrollment.completed_at,
        )
        async with insert_savepoint(self._session, "enrollment insert"):
            self._session.add(row)
            await self._session.flush()

    async def serialize(self, student_id: int, course_id: int) -> None:
        key = f"course:{student_id}:{course_id}"
        stmt = select(func.pg_advisory_xact_lock(func.hashtext(key)))
        async with storage_errors("course lock"):
            await self._session.execute(stmt)

    async def complete_if_unset(self, student_id: int, course_id: int, now: int) -> bool:
        stmt = insert(CourseStudentRow).values(
            student_id=student_id,
            course_id=course_id,
            status=EnrollmentStatus.COMPLETED.value,
            enrolled_at=now,
            completed_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CourseStudentRow.student_id, CourseStudentRow.course_id],
            set_={"status": EnrollmentStatus.COMPLETED.value, "completed_at": now},
            where=CourseStudentRow.completed_at.is_(None),
        ).returning(CourseStudentRow.student_id)
        async with storage_errors("course completion", write=True):
            result = await self._session.execute(stmt)
        return result.first() is not None


def _row_to_enrollment(row: CourseStudentRow) -> CourseEnrollment:
    return CourseEnrollment(
        student_id=row.student_id,
        course_id=row.course_id,
        status=EnrollmentStatus(row.status),
        enrolled_at=row.enrolled_at,
        completed_at=row.completed_at,
    )
