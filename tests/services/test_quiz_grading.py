from __future__ import annotations

import pytest

from app.models.material import QuestionType, QuizOption, QuizQuestion
from app.services.errors import ValidationError
from app.services.quiz_grading import MANUAL_GRADING, grade_question, grade_quiz


def _mc() -> QuizQuestion:
    return QuizQuestion(
        question_type=QuestionType.MULTIPLE_CHOICE,
        question="Pick b",
        options=(QuizOption("a"), QuizOption("b", is_correct=True), QuizOption("c")),
    )


def _fill(answer: str = "Paris") -> QuizQuestion:
    return QuizQuestion(
        question_type=QuestionType.FILL_BLANK,
        question="Capital of France?",
        correct_answer=answer,
    )


def test_multiple_choice_by_option_index() -> None:
    assert grade_question(0, _mc(), 1).is_correct is True
    assert grade_question(0, _mc(), "1").is_correct is True
    assert grade_question(0, _mc(), 0).is_correct is False


def test_multiple_choice_out_of_range_is_wrong() -> None:
    assert grade_question(0, _mc(), 7).is_correct is False
    assert grade_question(0, _mc(), -1).is_correct is False
    assert grade_question(0, _mc(), None).is_correct is False


def test_multiple_choice_reports_correct_option_text() -> None:
    result = grade_question(0, _mc(), 0)
    assert result.correct_answer == "b"


def test_true_false_requires_exact_match() -> None:
    q = QuizQuestion(
        question_type=QuestionType.TRUE_FALSE, question="Sky is blue", correct_answer=True
    )
    assert grade_question(0, q, True).is_correct is True
    assert grade_question(0, q, False).is_correct is False
    # No coercion between strings and booleans.
    assert grade_question(0, q, "true").is_correct is False


def test_fill_blank_ignores_case_and_surrounding_space() -> None:
    assert grade_question(0, _fill(), "  paris ").is_correct is True
    assert grade_question(0, _fill(), "PARIS").is_correct is True
    assert grade_question(0, _fill(), "Lyon").is_correct is False
    assert grade_question(0, _fill(), None).is_correct is False


def test_essay_is_never_auto_correct() -> None:
    q = QuizQuestion(
        question_type=QuestionType.ESSAY,
        question="Discuss",
        sample_answer="A model answer",
        explanation="Look for structure",
    )
    result = grade_question(2, q, "a long and excellent essay")
    assert result.is_correct is False
    assert result.needs_manual_review is True
    assert result.explanation.startswith(MANUAL_GRADING)
    assert result.correct_answer == "A model answer"
    assert result.question_index == 2


def test_essay_without_sample_answer() -> None:
    q = QuizQuestion(question_type=QuestionType.ESSAY, question="Discuss")
    result = grade_question(0, q, "")
    assert result.explanation == MANUAL_GRADING
    assert result.correct_answer == MANUAL_GRADING


def test_grade_quiz_scores_as_percentage() -> None:
    graded = grade_quiz([_mc(), _fill(), _fill("Rome")], [1, "paris", "milan"], 70)
    assert graded.correct_answers == 2
    assert graded.total_questions == 3
    assert graded.score == pytest.approx(66.6667, abs=1e-3)
    assert graded.passed is False


def test_grade_quiz_missing_answers_count_as_wrong() -> None:
    graded = grade_quiz([_mc(), _fill()], [1], 50)
    assert graded.correct_answers == 1
    assert graded.score == 50.0
    assert graded.passed is True
    assert graded.results[1].user_answer is None


def test_grade_quiz_passing_boundary() -> None:
    questions = [_fill(str(i)) for i in range(10)]
    seven = grade_quiz(questions, [str(i) for i in range(7)], 70)
    assert seven.score == 70.0
    assert seven.passed is True

    six = grade_quiz(questions, [str(i) for i in range(6)], 70)
    assert six.passed is False


def test_grade_quiz_rejects_empty_quiz() -> None:
    with pytest.raises(ValidationError):
        grade_quiz([], [], 70)


def test_grade_quiz_rejects_extra_answers() -> None:
    with pytest.raises(ValidationError):
        grade_quiz([_mc()], [1, 2], 70)
