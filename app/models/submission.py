from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID, uuid4

from app.models.material import MaterialRef


class SubmissionType(StrEnum):
    TEXT = "text"
    FILE = "file"
    URL = "url"


class AssignmentStatus(StrEnum):
    SUBMITTED = "submitted"
    GRADED = "graded"
    RETURNED = "returned"
    LATE = "late"


@dataclass(frozen=True, slots=True)
class QuestionResult:
    question_index: int
    user_answer: object
    is_correct: bool
    correct_answer: object
    explanation: str | None = None
    needs_manual_review: bool = False

    def as_dict(self) -> dict[str, object]:
        return {
            "question_index": self.question_index,
            "user_answer": self.user_answer,
            "is_correct": self.is_correct,
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "needs_manual_review": self.needs_manual_review,
        }


@dataclass(frozen=True, slots=True)
class QuizSubmission:
    """One quiz attempt.  Append-only; attempts are never overwritten."""

    id: UUID
    student_id: int
    material: MaterialRef
    attempt_number: int
    score: float
    total_questions: int
    correct_answers: int
    time_taken: int
    answers: tuple[object, ...]
    question_results: tuple[QuestionResult, ...]
    passed: bool
    submitted_at: int

    @staticmethod
    def new(
        *,
        student_id: int,
        material: MaterialRef,
        attempt_number: int,
        score: float,
        total_questions: int,
        correct_answers: int,
        time_taken: int,
        answers: tuple[object, ...],
        question_results: tuple[QuestionResult, ...],
        passed: bool,
        submitted_at: int,
    ) -> QuizSubmission:
        return QuizSubmission(
            id=uuid4(),
            student_id=student_id,
            material=material,
            attempt_number=attempt_number,
            score=score,
            total_questions=total_questions,
            correct_answers=correct_answers,
            time_taken=time_taken,
            answers=answers,
            question_results=question_results,
            passed=passed,
            submitted_at=submitted_at,
        )


@dataclass(frozen=True, slots=True)
class AssignmentSubmission:
    """One assignment hand-in.  Exactly one payload group is populated,
    matching ``submission_type``."""

    id: UUID
    student_id: int
    material: MaterialRef
    submission_type: SubmissionType
    submitted_at: int
    status: AssignmentStatus = AssignmentStatus.SUBMITTED
    content: str | None = None
    file_path: str | None = None
    original_filename: str | None = None
    url: str | None = None
    grade: float | None = None
    feedback: str | None = None
