"""PostgreSQL implementation of SectionProgressRepo."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import StudentSectionProgressRow
from app.models.progress import SectionProgress, SectionStatus
from app.repos.pg_errors import storage_errors

_Row = StudentSectionProgressRow


class PgSectionProgressRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: int, section_id: int) -> SectionProgress | None:
        stmt = select(_Row).where(_Row.student_id == student_id, _Row.section_id == section_id)
        async with storage_errors("section progress read"):
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_section(row) if row else None

    async def complete_if_unset(self, student_id: int, section_id: int, now: int) -> bool:
        """INSERT ... ON CONFLICT DO UPDATE guarded by completed_at IS NULL.

        RETURNING yields a row only when this statement set completed_at.
        """
        stmt = insert(_Row).values(
            student_id=student_id,
            section_id=section_id,
            status=SectionStatus.COMPLETED.value,
            started_at=now,
            completed_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[_Row.student_id, _Row.section_id],
            set_={
                "status": SectionStatus.COMPLETED.value,
                "completed_at": now,
                "started_at": func.coalesce(_Row.started_at, now),
            },
            where=_Row.completed_at.is_(None),
        ).returning(_Row.student_id)
        async with storage_errors("section completion", write=True):
            result = await self._session.execute(stmt)
        return result.first() is not None

    async def serialize(self, student_id: int, section_id: int) -> None:
        # Transaction-scoped advisory lock: a concurrent roll-up of the same
        # section waits for our commit, then counts our completed material.
        key = f"section:{student_id}:{section_id}"
        stmt = select(func.pg_advisory_xact_lock(func.hashtext(key)))
        async with storage_errors("section lock"):
            await self._session.execute(stmt)

    async def mark_started(self, student_id: int, section_id: int, now: int) -> None:
        stmt = (
            insert(_Row)
            .values(
                student_id=student_id,
                section_id=section_id,
                status=SectionStatus.IN_PROGRESS.value,
                started_at=now,
            )
            .on_conflict_do_nothing(index_elements=[_Row.student_id, _Row.section_id])
        )
        promote = (
            update(_Row)
            .where(_Row.student_id == student_id, _Row.section_id == section_id)
            .where(_Row.status == SectionStatus.NOT_STARTED.value)
            .values(status=SectionStatus.IN_PROGRESS.value, started_at=now)
        )
        async with storage_errors("section start", write=True):
            await self._session.execute(stmt)
            await self._session.execute(promote)

    async def count_completed(self, student_id: int, section_ids: Sequence[int]) -> int:
        if not section_ids:
            return 0
        stmt = (
            select(func.count())
            .select_from(_Row)
            .where(_Row.student_id == student_id)
            .where(_Row.section_id.in_(list(section_ids)))
            .where(_Row.status == SectionStatus.COMPLETED.value)
        )
        async with storage_errors("section count"):
            return (await self._session.execute(stmt)).scalar_one()


def _row_to_section(row: StudentSectionProgressRow) -> SectionProgress:
    return SectionProgress(
        student_id=row.student_id,
        section_id=row.section_id,
        status=SectionStatus(row.status),
        started_at=row.started_at,
        completed_at=row.completed_at,
    )
