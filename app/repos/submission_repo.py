from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.material import MaterialRef
from app.models.submission import AssignmentSubmission, QuizSubmission
from app.services.errors import StateConflictError


class QuizSubmissionRepo(Protocol):
    async def count_attempts(self, student_id: int, material: MaterialRef) -> int: ...
    async def add(self, submission: QuizSubmission) -> None: ...
    async def list_attempts(
        self, student_id: int, material: MaterialRef
    ) -> list[QuizSubmission]: ...


class AssignmentSubmissionRepo(Protocol):
    async def add(self, submission: AssignmentSubmission) -> None: ...
    async def get(self, submission_id: UUID) -> AssignmentSubmission | None: ...
    async def list_for_student(
        self, student_id: int, material: MaterialRef
    ) -> list[AssignmentSubmission]: ...


class InMemoryQuizSubmissionRepo:
    def __init__(self) -> None:
        self._rows: list[QuizSubmission] = []

    async def count_attempts(self, student_id: int, material: MaterialRef) -> int:
        return sum(
            1 for s in self._rows if s.student_id == student_id and s.material == material
        )

    async def add(self, submission: QuizSubmission) -> None:
        for s in self._rows:
            if (
                s.student_id == submission.student_id
                and s.material == submission.material
                and s.attempt_number == submission.attempt_number
            ):
                raise StateConflictError(
                    f"attempt {submission.attempt_number} already recorded"
                )
        self._rows.append(submission)

    async def list_attempts(
        self, student_id: int, material: MaterialRef
    ) -> list[QuizSubmission]:
        rows = [
            s for s in self._rows if s.student_id == student_id and s.material == material
        ]
        return sorted(rows, key=lambda s: s.attempt_number)


class InMemoryAssignmentSubmissionRepo:
    def __init__(self) -> None:
        self._rows: dict[UUID, AssignmentSubmission] = {}

    async def add(self, submission: AssignmentSubmission) -> None:
        self._rows[submission.id] = submission

    async def get(self, submission_id: UUID) -> AssignmentSubmission | None:
        return self._rows.get(submission_id)

    async def list_for_student(
        self, student_id: int, material: MaterialRef
    ) -> list[AssignmentSubmission]:
        rows = [
            s
            for s in self._rows.values()
            if s.student_id == student_id and s.material == material
        ]
        return sorted(rows, key=lambda s: s.submitted_at)
