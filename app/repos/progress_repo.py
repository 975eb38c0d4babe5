from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import Protocol

from app.models.material import MaterialRef
from app.models.progress import ProgressRecord, ProgressStatus
from app.services.errors import RecordWriteError, StateConflictError


class ProgressRepo(Protocol):
    async def get(
        self, student_id: int, material: MaterialRef
    ) -> ProgressRecord | None: ...
    async def get_for_update(
        self, student_id: int, material: MaterialRef
    ) -> ProgressRecord | None: ...
    async def add(self, record: ProgressRecord) -> None: ...
    async def save(self, record: ProgressRecord) -> None: ...
    async def count_completed(
        self, student_id: int, materials: Sequence[MaterialRef]
    ) -> int: ...
    async def count_in_section(self, student_id: int, section_id: int) -> int: ...
    async def get_many(
        self, student_id: int, materials: Sequence[MaterialRef]
    ) -> dict[MaterialRef, ProgressRecord]: ...
    async def list_for_student(
        self, student_id: int, course_id: int | None = None
    ) -> list[ProgressRecord]: ...
    async def list_for_course(self, course_id: int) -> list[ProgressRecord]: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[int, MaterialRef], ProgressRecord] = {}

    async def get(self, student_id: int, material: MaterialRef) -> ProgressRecord | None:
        return self._store.get((student_id, material))

    async def get_for_update(
        self, student_id: int, material: MaterialRef
    ) -> ProgressRecord | None:
        # Callers already hold the per-key lock; no row lock to take here.
        return self._store.get((student_id, material))

    async def add(self, record: ProgressRecord) -> None:
        key = (record.student_id, record.material)
        if key in self._store:
            raise StateConflictError(
                f"progress record exists for student={record.student_id} "
                f"material={record.material}"
            )
        self._store[key] = replace(record, interaction_data=dict(record.interaction_data))

    async def save(self, record: ProgressRecord) -> None:
        key = (record.student_id, record.material)
        if key not in self._store:
            raise RecordWriteError(
                f"no progress record for student={record.student_id} "
                f"material={record.material}"
            )
        self._store[key] = replace(record, interaction_data=dict(record.interaction_data))

    async def count_completed(
        self, student_id: int, materials: Sequence[MaterialRef]
    ) -> int:
        wanted = set(materials)
        return sum(
            1
            for (sid, ref), rec in self._store.items()
            if sid == student_id
            and ref in wanted
            and rec.status is ProgressStatus.COMPLETED
        )

    async def count_in_section(self, student_id: int, section_id: int) -> int:
        return sum(
            1
            for rec in self._store.values()
            if rec.student_id == student_id and rec.section_id == section_id
        )

    async def get_many(
        self, student_id: int, materials: Sequence[MaterialRef]
    ) -> dict[MaterialRef, ProgressRecord]:
        return {
            ref: self._store[(student_id, ref)]
            for ref in materials
            if (student_id, ref) in self._store
        }

    async def list_for_student(
        self, student_id: int, course_id: int | None = None
    ) -> list[ProgressRecord]:
        return [
            rec
            for rec in self._store.values()
            if rec.student_id == student_id
            and (course_id is None or rec.course_id == course_id)
        ]

    async def list_for_course(self, course_id: int) -> list[ProgressRecord]:
        return [rec for rec in self._store.values() if rec.course_id == course_id]
