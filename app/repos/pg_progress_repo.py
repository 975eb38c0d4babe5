"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import StudentProgressRow
from app.models.material import MaterialRef
from app.models.progress import ProgressRecord, ProgressStatus
from app.repos.pg_errors import insert_savepoint, storage_errors
from app.services.errors import RecordWriteError


class PgProgressRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: int, material: MaterialRef) -> ProgressRecord | None:
        async with storage_errors("progress read"):
            row = (
                await self._session.execute(_by_key(student_id, material))
            ).scalar_one_or_none()
        return _row_to_record(row) if row else None

    async def get_for_update(
        self, student_id: int, material: MaterialRef
    ) -> ProgressRecord | None:
        stmt = _by_key(student_id, material).with_for_update()
        async with storage_errors("progress read"):
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_record(row) if row else None

    async def add(self, record: ProgressRecord) -> None:
        row = StudentProgressRow(
            student_id=record.student_id,
            course_id=record.course_id,
            section_id=record.section_id,
            learning_material_id=record.material.value,
            status=record.status.value,
            progress_percentage=record.progress_percentage,
            time_spent=record.time_spent,
            score=record.score,
            attempts=record.attempts,
            interaction_data=dict(record.interaction_data),
            started_at=record.started_at,
            completed_at=record.completed_at,
            last_accessed_at=record.last_accessed_at,
        )
        async with insert_savepoint(self._session, "progress insert"):
            self._session.add(row)
            await self._session.flush()

    async def save(self, record: ProgressRecord) -> None:
        stmt = (
            update(StudentProgressRow)
            .where(StudentProgressRow.student_id == record.student_id)
            .where(StudentProgressRow.learning_material_id == record.material.value)
            .values(
                status=record.status.value,
                progress_percentage=record.progress_percentage,
                time_spent=record.time_spent,
                score=record.score,
                attempts=record.attempts,
                interaction_data=dict(record.interaction_data),
                completed_at=record.completed_at,
                last_accessed_at=record.last_accessed_at,
            )
        )
        async with storage_errors("progress update", write=True):
            result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise RecordWriteError(
                f"no progress record for student={record.student_id} "
                f"material={record.material}"
            )

    async def count_completed(
        self, student_id: int, materials: Sequence[MaterialRef]
    ) -> int:
        if not materials:
            return 0
        stmt = (
            select(func.count())
            .select_from(StudentProgressRow)
            .where(StudentProgressRow.student_id == student_id)
            .where(
                StudentProgressRow.learning_material_id.in_([m.value for m in materials])
            )
            .where(StudentProgressRow.status == ProgressStatus.COMPLETED.value)
        )
        async with storage_errors("progress count"):
            return (await self._session.execute(stmt)).scalar_one()

    async def count_in_section(self, student_id: int, section_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(StudentProgressRow)
            .where(StudentProgressRow.student_id == student_id)
            .where(StudentProgressRow.section_id == section_id)
        )
        async with storage_errors("progress count"):
            return (await self._session.execute(stmt)).scalar_one()

    async def get_many(
        self, student_id: int, materials: Sequence[MaterialRef]
    ) -> dict[MaterialRef, ProgressRecord]:
        if not materials:
            return {}
        stmt = (
            select(StudentProgressRow)
            .where(StudentProgressRow.student_id == student_id)
            .where(
                StudentProgressRow.learning_material_id.in_([m.value for m in materials])
            )
        )
        async with storage_errors("progress read"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return {MaterialRef(r.learning_material_id): _row_to_record(r) for r in rows}

    async def list_for_student(
        self, student_id: int, course_id: int | None = None
    ) -> list[ProgressRecord]:
        stmt = select(StudentProgressRow).where(StudentProgressRow.student_id == student_id)
        if course_id is not None:
            stmt = stmt.where(StudentProgressRow.course_id == course_id)
        async with storage_errors("progress read"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_record(r) for r in rows]

    async def list_for_course(self, course_id: int) -> list[ProgressRecord]:
        stmt = select(StudentProgressRow).where(StudentProgressRow.course_id == course_id)
        async with storage_errors("progress read"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_record(r) for r in rows]


def _by_key(student_id: int, material: MaterialRef):
    return (
        select(StudentProgressRow)
        .where(StudentProgressRow.student_id == student_id)
        .where(StudentProgressRow.learning_material_id == material.value)
    )


def _row_to_record(row: StudentProgressRow) -> ProgressRecord:
    return ProgressRecord(
        student_id=row.student_id,
        course_id=row.course_id,
        section_id=row.section_id,
        material=MaterialRef(row.learning_material_id),
        status=ProgressStatus(row.status),
        progress_percentage=float(row.progress_percentage),
        time_spent=row.time_spent,
        score=float(row.score) if row.score is not None else None,
        attempts=row.attempts,
        interaction_data=dict(row.interaction_data or {}),
        started_at=row.started_at,
        completed_at=row.completed_at,
        last_accessed_at=row.last_accessed_at,
    )
