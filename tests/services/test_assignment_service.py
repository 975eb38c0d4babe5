from __future__ import annotations

import asyncio

import pytest

from app.models.material import ContentType, Material, MaterialRef
from app.models.progress import ProgressStatus, SectionStatus
from app.models.submission import AssignmentStatus, SubmissionType
from app.services.assignment_service import SubmissionPayload
from app.services.errors import InvalidMaterialError, NotFoundError, ValidationError
from app.services.progress_engine import InMemoryStores, ProgressEngine
from tests.conftest import START

ASSIGNMENT = MaterialRef("first-program")


def _text(content: str = "print('hello')") -> SubmissionPayload:
    return SubmissionPayload(submission_type=SubmissionType.TEXT, content=content)


def test_submission_completes_assignment(engine: ProgressEngine) -> None:
    async def scenario():
        receipt = await engine.assignments.submit_assignment(7, 1, 11, ASSIGNMENT, _text())
        stored = await engine.stores.assignment_submissions.get(receipt.submission_id)
        return receipt, stored, await engine.stores.progress.get(7, ASSIGNMENT)

    receipt, stored, record = asyncio.run(scenario())
    assert receipt.success is True
    assert receipt.status is AssignmentStatus.SUBMITTED
    assert stored is not None
    assert stored.content == "print('hello')"
    assert stored.submitted_at == START
    assert record.status is ProgressStatus.COMPLETED
    assert record.progress_percentage == 100
    assert record.interaction_data["submission_id"] == str(receipt.submission_id)


def test_submission_after_due_date_is_late(
    engine: ProgressEngine, stores: InMemoryStores
) -> None:
    overdue = MaterialRef("overdue-essay")
    stores.catalog.add_material(
        Material(
            ref=overdue,
            title="Overdue",
            content_type=ContentType.ASSIGNMENT,
            due_date=START - 1,
        )
    )
    stores.catalog.link_material(11, overdue, is_required=False)
    receipt = asyncio.run(
        engine.assignments.submit_assignment(7, 1, 11, overdue, _text())
    )
    assert receipt.status is AssignmentStatus.LATE


def test_url_submission(engine: ProgressEngine) -> None:
    payload = SubmissionPayload(
        submission_type=SubmissionType.URL, url=" https://example.com/repo "
    )

    async def scenario():
        receipt = await engine.assignments.submit_assignment(7, 1, 11, ASSIGNMENT, payload)
        return await engine.stores.assignment_submissions.get(receipt.submission_id)

    stored = asyncio.run(scenario())
    assert stored.url == "https://example.com/repo"
    assert stored.content is None


@pytest.mark.parametrize(
    "payload",
    [
        SubmissionPayload(submission_type=SubmissionType.TEXT, content="   "),
        SubmissionPayload(
            submission_type=SubmissionType.TEXT, content="x", url="https://a.b"
        ),
        SubmissionPayload(submission_type=SubmissionType.FILE),
        SubmissionPayload(
            submission_type=SubmissionType.FILE, file_path="/up/a.py", content="x"
        ),
        SubmissionPayload(submission_type=SubmissionType.URL, url="ftp://example.com"),
        SubmissionPayload(submission_type=SubmissionType.URL),
    ],
)
def test_mismatched_payload_is_rejected(
    engine: ProgressEngine, payload: SubmissionPayload
) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(engine.assignments.submit_assignment(7, 1, 11, ASSIGNMENT, payload))
    assert asyncio.run(engine.stores.progress.get(7, ASSIGNMENT)) is None


def test_non_assignment_material_is_rejected(engine: ProgressEngine) -> None:
    with pytest.raises(InvalidMaterialError):
        asyncio.run(
            engine.assignments.submit_assignment(
                7, 1, 11, MaterialRef("basics-quiz"), _text()
            )
        )


def test_quiz_and_assignment_complete_their_section(
    engine: ProgressEngine, stores: InMemoryStores
) -> None:
    async def scenario():
        await engine.quizzes.submit_quiz(
            7, 1, 11, MaterialRef("basics-quiz"), [1, "true", "len"], 90
        )
        await engine.assignments.submit_assignment(7, 1, 11, ASSIGNMENT, _text())
        return await stores.sections.get(7, 11)

    assert asyncio.run(scenario()).status is SectionStatus.COMPLETED


def test_assignment_in_wrong_course_is_rejected_before_storing(
    engine: ProgressEngine,
) -> None:
    async def scenario():
        with pytest.raises(NotFoundError):
            await engine.assignments.submit_assignment(7, 2, 11, ASSIGNMENT, _text())
        stored = await engine.stores.assignment_submissions.list_for_student(7, ASSIGNMENT)
        return stored, await engine.stores.progress.get(7, ASSIGNMENT)

    stored, record = asyncio.run(scenario())
    assert stored == []
    assert record is None
