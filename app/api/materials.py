"""Learning material endpoints: views, progress, telemetry, submissions.

  POST /v1/materials/{id}/view               record a view            -> 202
  POST /v1/materials/{id}/progress           record + update progress -> 200
  POST /v1/materials/{id}/interactions       merge raw telemetry      -> 202
  POST /v1/materials/{id}/quiz-submit        grade a quiz attempt     -> 200
  POST /v1/materials/{id}/assignment-submit  store a submission       -> 201

Every write is made on behalf of the calling student.  course_id and
section_id travel in the body because a material may be linked into more
than one section.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.api.dependencies import get_engine, require_student, to_http_error
from app.models.interaction import (
    MaterialViewed,
    ProgressReported,
    parse_interaction,
)
from app.models.material import MaterialRef
from app.models.progress import ProgressRecord
from app.models.submission import SubmissionType
from app.services.assignment_service import SubmissionPayload
from app.services.errors import InvalidMaterialError, ProgressError
from app.services.progress_engine import ProgressEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/materials", tags=["materials"])


class PlacementIn(BaseModel):
    course_id: int
    section_id: int


class ViewIn(PlacementIn):
    user_agent: str | None = None


class ProgressIn(PlacementIn):
    progress_percentage: float
    time_spent: int = Field(0, ge=0)
    score: float | None = None
    interaction_data: dict[str, Any] | None = None


class InteractionIn(PlacementIn):
    interaction_type: str | None = None
    interaction_data: dict[str, Any] = Field(default_factory=dict)

    def raw(self) -> dict[str, Any]:
        if self.interaction_type is None:
            return self.interaction_data
        return {**self.interaction_data, "action": self.interaction_type}


class QuizSubmitIn(PlacementIn):
    answers: list[Any]
    time_taken: int = Field(0, ge=0)


class AssignmentSubmitIn(PlacementIn):
    submission_type: SubmissionType
    content: str | None = None
    file_path: str | None = None
    original_filename: str | None = None
    url: str | None = None


class ProgressOut(BaseModel):
    material_id: str
    status: str
    progress_percentage: float
    time_spent: int
    score: float | None
    attempts: int
    started_at: int | None
    completed_at: int | None
    last_accessed_at: int | None


class AssignmentOut(BaseModel):
    success: bool
    submission_id: UUID
    status: str
    message: str


def _progress_out(record: ProgressRecord) -> ProgressOut:
    return ProgressOut(
        material_id=str(record.material),
        status=record.status.value,
        progress_percentage=record.progress_percentage,
        time_spent=record.time_spent,
        score=record.score,
        attempts=record.attempts,
        started_at=record.started_at,
        completed_at=record.completed_at,
        last_accessed_at=record.last_accessed_at,
    )


async def _known_material(engine: ProgressEngine, material_id: str) -> MaterialRef:
    ref = MaterialRef(material_id)
    if not await engine.stores.catalog.material_exists(ref):
        raise InvalidMaterialError(f"material {material_id} not found")
    return ref


@router.post(
    "/{material_id}/view",
    response_model=ProgressOut,
    status_code=status.HTTP_202_ACCEPTED,
)
async def record_view(
    material_id: str,
    body: ViewIn,
    student_id: Annotated[int, Depends(require_student)],
    engine: Annotated[ProgressEngine, Depends(get_engine)],
) -> ProgressOut:
    try:
        ref = await _known_material(engine, material_id)
        record = await engine.recorder.record_interaction(
            student_id,
            body.course_id,
            body.section_id,
            ref,
            MaterialViewed(user_agent=body.user_agent),
        )
    except ProgressError as e:
        raise to_http_error(e) from None
    return _progress_out(record)


@router.post("/{material_id}/progress", response_model=ProgressOut)
async def report_progress(
    material_id: str,
    body: ProgressIn,
    student_id: Annotated[int, Depends(require_student)],
    engine: Annotated[ProgressEngine, Depends(get_engine)],
) -> ProgressOut:
    event = ProgressReported(
        progress=body.progress_percentage, extra=body.interaction_data or {}
    )

    try:
        ref = await _known_material(engine, material_id)
        await engine.recorder.record_interaction(
            student_id, body.course_id, body.section_id, ref, event
        )
        await engine.updater.update_progress(
            student_id,
            ref,
            body.progress_percentage,
            body.time_spent,
            body.score,
        )
        record = await engine.stores.progress.get(student_id, ref)
    except ProgressError as e:
        raise to_http_error(e) from None

    if record is None:
        # Recorded a moment ago in this same scope.
        raise HTTPException(status_code=500, detail="progress record missing")
    return _progress_out(record)


@router.post(
    "/{material_id}/interactions",
    response_model=ProgressOut,
    status_code=status.HTTP_202_ACCEPTED,
)
async def record_interaction(
    material_id: str,
    body: InteractionIn,
    student_id: Annotated[int, Depends(require_student)],
    engine: Annotated[ProgressEngine, Depends(get_engine)],
) -> ProgressOut:
    try:
        event = parse_interaction(body.raw())
    except ValueError as e:
        logger.warning("Rejected interaction payload: %s", e)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from None

    try:
        ref = await _known_material(engine, material_id)
        record = await engine.recorder.record_interaction(
            student_id, body.course_id, body.section_id, ref, event
        )
    except ProgressError as e:
        raise to_http_error(e) from None
    return _progress_out(record)


@router.post("/{material_id}/quiz-submit")
async def submit_quiz(
    material_id: str,
    body: QuizSubmitIn,
    student_id: Annotated[int, Depends(require_student)],
    engine: Annotated[ProgressEngine, Depends(get_engine)],
) -> dict:
    try:
        result = await engine.quizzes.submit_quiz(
            student_id,
            body.course_id,
            body.section_id,
            MaterialRef(material_id),
            body.answers,
            body.time_taken,
        )
    except ProgressError as e:
        raise to_http_error(e) from None
    return result.as_dict()


@router.post(
    "/{material_id}/assignment-submit",
    response_model=AssignmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_assignment(
    material_id: str,
    body: AssignmentSubmitIn,
    student_id: Annotated[int, Depends(require_student)],
    engine: Annotated[ProgressEngine, Depends(get_engine)],
) -> AssignmentOut:
    payload = SubmissionPayload(
        submission_type=body.submission_type,
        content=body.content,
        file_path=body.file_path,
        original_filename=body.original_filename,
        url=body.url,
    )
    try:
        receipt = await engine.assignments.submit_assignment(
            student_id,
            body.course_id,
            body.section_id,
            MaterialRef(material_id),
            payload,
        )
    except ProgressError as e:
        raise to_http_error(e) from None
    return AssignmentOut(
        success=receipt.success,
        submission_id=receipt.submission_id,
        status=receipt.status.value,
        message=receipt.message,
    )
