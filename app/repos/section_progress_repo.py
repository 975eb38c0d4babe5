from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import Protocol

from app.models.progress import SectionProgress, SectionStatus


class SectionProgressRepo(Protocol):
    async def get(self, student_id: int, section_id: int) -> SectionProgress | None: ...
    async def complete_if_unset(
        self, student_id: int, section_id: int, now: int
    ) -> bool: ...
    async def mark_started(self, student_id: int, section_id: int, now: int) -> None: ...
    async def serialize(self, student_id: int, section_id: int) -> None:
        """Block concurrent roll-ups of the same row until this transaction ends."""
        ...
    async def count_completed(
        self, student_id: int, section_ids: Sequence[int]
    ) -> int: ...


class InMemorySectionProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[int, int], SectionProgress] = {}

    async def get(self, student_id: int, section_id: int) -> SectionProgress | None:
        return self._store.get((student_id, section_id))

    async def complete_if_unset(self, student_id: int, section_id: int, now: int) -> bool:
        """Upsert to completed unless a completion timestamp already exists."""
        key = (student_id, section_id)
        existing = self._store.get(key)
        if existing is None:
            self._store[key] = SectionProgress(
                student_id=student_id,
                section_id=section_id,
                status=SectionStatus.COMPLETED,
                started_at=now,
                completed_at=now,
            )
            return True
        if existing.completed_at is not None:
            return False
        self._store[key] = replace(
            existing, status=SectionStatus.COMPLETED, completed_at=now
        )
        return True

    async def serialize(self, student_id: int, section_id: int) -> None:
        # In-process the keyed lock already serializes roll-ups.
        return None

    async def mark_started(self, student_id: int, section_id: int, now: int) -> None:
        key = (student_id, section_id)
        existing = self._store.get(key)
        if existing is None:
            self._store[key] = SectionProgress(
                student_id=student_id,
                section_id=section_id,
                status=SectionStatus.IN_PROGRESS,
                started_at=now,
            )
        elif existing.status is SectionStatus.NOT_STARTED:
            self._store[key] = replace(
                existing, status=SectionStatus.IN_PROGRESS, started_at=now
            )

    async def count_completed(self, student_id: int, section_ids: Sequence[int]) -> int:
        wanted = set(section_ids)
        return sum(
            1
            for (sid, sec), sp in self._store.items()
            if sid == student_id
            and sec in wanted
            and sp.status is SectionStatus.COMPLETED
        )
