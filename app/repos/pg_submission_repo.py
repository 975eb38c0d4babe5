"""PostgreSQL implementations of the quiz and assignment submission repos."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import AssignmentSubmissionRow, QuizResultRow
from app.models.material import MaterialRef
from app.models.submission import (
    AssignmentStatus,
    AssignmentSubmission,
    QuestionResult,
    QuizSubmission,
    SubmissionType,
)
from app.repos.pg_errors import insert_savepoint, storage_errors


class PgQuizSubmissionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def count_attempts(self, student_id: int, material: MaterialRef) -> int:
        stmt = (
            select(func.count())
            .select_from(QuizResultRow)
            .where(QuizResultRow.student_id == student_id)
            .where(QuizResultRow.material_id == material.value)
        )
        async with storage_errors("quiz attempt count"):
            return (await self._session.execute(stmt)).scalar_one()

    async def add(self, submission: QuizSubmission) -> None:
        row = QuizResultRow(
            id=submission.id,
            student_id=submission.student_id,
            material_id=submission.material.value,
            attempt_number=submission.attempt_number,
            score=submission.score,
            total_questions=submission.total_questions,
            correct_answers=submission.correct_answers,
            time_taken=submission.time_taken,
            answers=list(submission.answers),
            question_results=[r.as_dict() for r in submission.question_results],
            passed=submission.passed,
            submitted_at=submission.submitted_at,
        )
        # A concurrent attempt with the same number surfaces as StateConflictError.
        async with insert_savepoint(self._session, "quiz result insert"):
            self._session.add(row)
            await self._session.flush()

    async def list_attempts(
        self, student_id: int, material: MaterialRef
    ) -> list[QuizSubmission]:
        stmt = (
            select(QuizResultRow)
            .where(QuizResultRow.student_id == student_id)
            .where(QuizResultRow.material_id == material.value)
            .order_by(QuizResultRow.attempt_number)
        )
        async with storage_errors("quiz result read"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_quiz(r) for r in rows]


class PgAssignmentSubmissionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, submission: AssignmentSubmission) -> None:
        row = AssignmentSubmissionRow(
            id=submission.id,
            student_id=submission.student_id,
            material_id=submission.material.value,
            submission_type=submission.submission_type.value,
            content=submission.content,
            file_path=submission.file_path,
            original_filename=submission.original_filename,
            url=submission.url,
            status=submission.status.value,
            grade=submission.grade,
            feedback=submission.feedback,
            submitted_at=submission.submitted_at,
        )
        async with insert_savepoint(self._session, "assignment submission insert"):
            self._session.add(row)
            await self._session.flush()

    async def get(self, submission_id: UUID) -> AssignmentSubmission | None:
        stmt = select(AssignmentSubmissionRow).where(
            AssignmentSubmissionRow.id == submission_id
        )
        async with storage_errors("assignment submission read"):
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_assignment(row) if row else None

    async def list_for_student(
        self, student_id: int, material: MaterialRef
    ) -> list[AssignmentSubmission]:
        stmt = (
            select(AssignmentSubmissionRow)
            .where(AssignmentSubmissionRow.student_id == student_id)
            .where(AssignmentSubmissionRow.material_id == material.value)
            .order_by(AssignmentSubmissionRow.submitted_at)
        )
        async with storage_errors("assignment submission read"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_assignment(r) for r in rows]


def _row_to_quiz(row: QuizResultRow) -> QuizSubmission:
    return QuizSubmission(
        id=row.id,
        student_id=row.student_id,
        material=MaterialRef(row.material_id),
        attempt_number=row.attempt_number,
        score=float(row.score),
        total_questions=row.total_questions,
        correct_answers=row.correct_answers,
        time_taken=row.time_taken,
        answers=tuple(row.answers or ()),
        question_results=tuple(QuestionResult(**r) for r in row.question_results or ()),
        passed=row.passed,
        submitted_at=row.submitted_at,
    )


def _row_to_assignment(row: AssignmentSubmissionRow) -> AssignmentSubmission:
    return AssignmentSubmission(
        id=row.id,
        student_id=row.student_id,
        material=MaterialRef(row.material_id),
        submission_type=SubmissionType(row.submission_type),
        submitted_at=row.submitted_at,
        status=AssignmentStatus(row.status),
        content=row.content,
        file_path=row.file_path,
        original_filename=row.original_filename,
        url=row.url,
        grade=float(row.grade) if row.grade is not None else None,
        feedback=row.feedback,
    )
