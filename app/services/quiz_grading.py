"""Quiz grading and submission.

Grading is pure (``grade_question`` / ``grade_quiz``).  ``QuizService``
wires a graded attempt into the progress engine:

  1. update_progress(100 if passed else 0, time_taken, score)
  2. record a ``quiz_submitted`` interaction
  3. append a QuizSubmission with the next attempt number

On a student's first touch of the quiz there is no progress record yet,
so step 1 is a no-op; step 2 creates the record and step 1 is re-applied
so a first passing attempt still completes the material.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from app.core.clock import Clock, epoch_now
from app.core.metrics import PROGRESS_WRITE_CONFLICTS, QUIZ_SUBMISSIONS
from app.models.interaction import QuizSubmitted
from app.models.material import ContentType, MaterialRef, QuestionType, QuizQuestion
from app.models.submission import QuestionResult, QuizSubmission
from app.repos.catalog_repo import MaterialCatalog
from app.repos.submission_repo import QuizSubmissionRepo
from app.services.errors import InvalidMaterialError, StateConflictError, ValidationError
from app.services.interaction_recorder import InteractionRecorder
from app.services.locks import KeyedLock, quiz_key
from app.services.progress_updater import ProgressUpdater

logger = logging.getLogger(__name__)

MANUAL_GRADING = "Manual grading required"


def _option_index(answer: object) -> int | None:
    if isinstance(answer, bool):
        return None
    if isinstance(answer, int):
        return answer
    if isinstance(answer, str) and answer.strip().isdigit():
        return int(answer.strip())
    return None


def _normalise_text(value: object) -> str | None:
    if value is None or isinstance(value, (list, dict)):
        return None
    return str(value).strip().lower()


def grade_question(index: int, question: QuizQuestion, answer: object) -> QuestionResult:
    qtype = question.question_type

    if qtype is QuestionType.MULTIPLE_CHOICE:
        chosen = _option_index(answer)
        correct = next((o.text for o in question.options if o.is_correct), None)
        is_correct = (
            chosen is not None
            and 0 <= chosen < len(question.options)
            and question.options[chosen].is_correct
        )
        return QuestionResult(index, answer, is_correct, correct, question.explanation)

    if qtype is QuestionType.TRUE_FALSE:
        expected = question.correct_answer
        is_correct = (
            answer is not None
            and type(answer) is type(expected)
            and answer == expected
        )
        return QuestionResult(index, answer, is_correct, expected, question.explanation)

    if qtype in (QuestionType.FILL_BLANK, QuestionType.SHORT_ANSWER):
        expected = _normalise_text(question.correct_answer)
        given = _normalise_text(answer)
        is_correct = expected is not None and given is not None and given == expected
        return QuestionResult(
            index, answer, is_correct, question.correct_answer, question.explanation
        )

    # Essays are never auto-graded.
    explanation = MANUAL_GRADING
    if question.explanation:
        explanation = f"{MANUAL_GRADING}. {question.explanation}"
    return QuestionResult(
        index,
        answer,
        False,
        question.sample_answer or MANUAL_GRADING,
        explanation,
        needs_manual_review=True,
    )


@dataclass(frozen=True, slots=True)
class GradedQuiz:
    score: float
    passed: bool
    passing_score: float
    correct_answers: int
    total_questions: int
    results: tuple[QuestionResult, ...]


def grade_quiz(
    questions: Sequence[QuizQuestion], answers: Sequence[object], passing_score: float
) -> GradedQuiz:
    """Grade answers positionally; a missing answer counts as None."""
    if not questions:
        raise ValidationError("quiz has no questions", field="answers")
    if len(answers) > len(questions):
        raise ValidationError(
            f"got {len(answers)} answers for {len(questions)} questions",
            field="answers",
        )

    results = tuple(
        grade_question(i, q, answers[i] if i < len(answers) else None)
        for i, q in enumerate(questions)
    )
    correct = sum(1 for r in results if r.is_correct)
    total = len(questions)
    score = correct * 100 / total
    return GradedQuiz(
        score=score,
        passed=score >= passing_score,
        passing_score=passing_score,
        correct_answers=correct,
        total_questions=total,
        results=results,
    )


@dataclass(frozen=True, slots=True)
class QuizResult:
    score: float
    passed: bool
    passing_score: float
    correct_answers: int
    total_questions: int
    results: tuple[QuestionResult, ...]
    time_taken: int
    attempt_number: int

    def as_dict(self) -> dict[str, object]:
        return {
            "score": self.score,
            "passed": self.passed,
            "passing_score": self.passing_score,
            "correct_answers": self.correct_answers,
            "total_questions": self.total_questions,
            "results": [r.as_dict() for r in self.results],
            "time_taken": self.time_taken,
            "attempt_number": self.attempt_number,
        }


class QuizService:
    def __init__(
        self,
        *,
        catalog: MaterialCatalog,
        updater: ProgressUpdater,
        recorder: InteractionRecorder,
        submissions: QuizSubmissionRepo,
        locks: KeyedLock,
        clock: Clock = epoch_now,
        retry_attempts: int = 3,
    ) -> None:
        self._catalog = catalog
        self._updater = updater
        self._recorder = recorder
        self._submissions = submissions
        self._locks = locks
        self._clock = clock
        self._retry_attempts = retry_attempts

    async def submit_quiz(
        self,
        student_id: int,
        course_id: int,
        section_id: int,
        material_ref: MaterialRef,
        answers: Sequence[object],
        time_taken: int,
    ) -> QuizResult:
        material = await self._catalog.get_material(material_ref)
        if material is None or material.content_type is not ContentType.QUIZ:
            raise InvalidMaterialError("invalid quiz material")
        if time_taken < 0:
            raise ValidationError("time_taken must be >= 0", field="time_taken")
        await self._recorder.ensure_placement(course_id, section_id, material_ref)

        graded = grade_quiz(material.questions, answers, material.passing_score)
        progress = 100.0 if graded.passed else 0.0

        updated = await self._updater.update_progress(
            student_id, material_ref, progress, time_taken, graded.score
        )
        await self._recorder.record_interaction(
            student_id,
            course_id,
            section_id,
            material_ref,
            QuizSubmitted(
                score=graded.score,
                passed=graded.passed,
                time_taken=time_taken,
                answers=tuple(answers),
            ),
        )
        if not updated:
            await self._updater.update_progress(
                student_id, material_ref, progress, time_taken, graded.score
            )

        attempt_number = await self._append_attempt(
            student_id, material_ref, graded, tuple(answers), time_taken
        )
        QUIZ_SUBMISSIONS.labels(passed=str(graded.passed).lower()).inc()
        logger.info(
            "Quiz submitted student=%s material=%s attempt=%d score=%.2f passed=%s",
            student_id,
            material_ref,
            attempt_number,
            graded.score,
            graded.passed,
            extra={"student_id": student_id, "material_id": str(material_ref)},
        )
        return QuizResult(
            score=graded.score,
            passed=graded.passed,
            passing_score=graded.passing_score,
            correct_answers=graded.correct_answers,
            total_questions=graded.total_questions,
            results=graded.results,
            time_taken=time_taken,
            attempt_number=attempt_number,
        )

    async def _append_attempt(
        self,
        student_id: int,
        material: MaterialRef,
        graded: GradedQuiz,
        answers: tuple[object, ...],
        time_taken: int,
    ) -> int:
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self._locks.hold(quiz_key(student_id, material)):
                    number = await self._submissions.count_attempts(student_id, material) + 1
                    await self._submissions.add(
                        QuizSubmission.new(
                            student_id=student_id,
                            material=material,
                            attempt_number=number,
                            score=graded.score,
                            total_questions=graded.total_questions,
                            correct_answers=graded.correct_answers,
                            time_taken=time_taken,
                            answers=answers,
                            question_results=graded.results,
                            passed=graded.passed,
                            submitted_at=self._clock(),
                        )
                    )
                return number
            except StateConflictError:
                PROGRESS_WRITE_CONFLICTS.labels(record="quiz_submission").inc()
                if attempt >= self._retry_attempts:
                    raise
                logger.info(
                    "Quiz attempt number taken, retrying student=%s material=%s",
                    student_id,
                    material,
                )
