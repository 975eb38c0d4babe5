from __future__ import annotations

import asyncio

import pytest

from app.models.material import MaterialRef
from app.models.progress import ProgressStatus
from app.services.errors import InvalidMaterialError, NotFoundError, ValidationError
from app.services.progress_engine import ProgressEngine

QUIZ = MaterialRef("basics-quiz")
PASSING = [1, "true", "len"]
FAILING = [1, "true", "map"]


def _submit(engine: ProgressEngine, answers: list, time_taken: int = 120):
    return engine.quizzes.submit_quiz(7, 1, 11, QUIZ, answers, time_taken)


def test_first_passing_attempt_completes_quiz(engine: ProgressEngine) -> None:
    async def scenario():
        result = await _submit(engine, PASSING)
        return result, await engine.stores.progress.get(7, QUIZ)

    result, record = asyncio.run(scenario())
    assert result.score == 100.0
    assert result.passed is True
    assert result.attempt_number == 1
    assert result.correct_answers == 3
    assert record.status is ProgressStatus.COMPLETED
    assert record.score == 100.0
    assert record.time_spent == 120
    assert record.interaction_data["action"] == "quiz_submitted"


def test_failing_attempt_leaves_quiz_in_progress(engine: ProgressEngine) -> None:
    async def scenario():
        result = await _submit(engine, FAILING)
        return result, await engine.stores.progress.get(7, QUIZ)

    result, record = asyncio.run(scenario())
    assert result.passed is False
    assert result.score == pytest.approx(66.67, abs=0.01)
    assert record.status is ProgressStatus.IN_PROGRESS
    assert record.completed_at is None


def test_attempts_are_numbered_in_order(engine: ProgressEngine) -> None:
    async def scenario():
        numbers = []
        for answers in (FAILING, FAILING, PASSING):
            numbers.append((await _submit(engine, answers, 60)).attempt_number)
        attempts = await engine.stores.quiz_submissions.list_attempts(7, QUIZ)
        return numbers, attempts, await engine.stores.progress.get(7, QUIZ)

    numbers, attempts, record = asyncio.run(scenario())
    assert numbers == [1, 2, 3]
    assert [a.attempt_number for a in attempts] == [1, 2, 3]
    assert [a.passed for a in attempts] == [False, False, True]
    assert record.status is ProgressStatus.COMPLETED
    assert record.time_spent == 180


def test_concurrent_submissions_get_distinct_attempt_numbers(engine: ProgressEngine) -> None:
    async def scenario():
        results = await asyncio.gather(*(_submit(engine, FAILING) for _ in range(4)))
        return sorted(r.attempt_number for r in results)

    assert asyncio.run(scenario()) == [1, 2, 3, 4]


def test_quiz_result_lists_every_question(engine: ProgressEngine) -> None:
    result = asyncio.run(_submit(engine, [0]))
    payload = result.as_dict()
    assert payload["total_questions"] == 3
    assert [r["question_index"] for r in payload["results"]] == [0, 1, 2]
    assert payload["results"][0]["correct_answer"] == "def"
    assert payload["results"][2]["user_answer"] is None


def test_non_quiz_material_is_rejected(engine: ProgressEngine) -> None:
    with pytest.raises(InvalidMaterialError):
        asyncio.run(engine.quizzes.submit_quiz(7, 1, 10, MaterialRef("intro-text"), [], 0))
    with pytest.raises(InvalidMaterialError):
        asyncio.run(engine.quizzes.submit_quiz(7, 1, 10, MaterialRef("nope"), [], 0))


def test_negative_time_taken_is_rejected(engine: ProgressEngine) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(_submit(engine, PASSING, -1))
    assert asyncio.run(engine.stores.progress.get(7, QUIZ)) is None


def test_quiz_in_wrong_section_is_rejected_before_grading(engine: ProgressEngine) -> None:
    async def scenario():
        with pytest.raises(NotFoundError):
            await engine.quizzes.submit_quiz(7, 1, 10, QUIZ, PASSING, 60)
        attempts = await engine.stores.quiz_submissions.count_attempts(7, QUIZ)
        return attempts, await engine.stores.progress.get(7, QUIZ)

    attempts, record = asyncio.run(scenario())
    assert attempts == 0
    assert record is None
