"""Progress read endpoints.

GET /v1/students/{student_id}/courses/{course_id}/progress
  -> read-through cache (progress:{student}:{course}), invalidated by every
     progress write for the student
GET /v1/students/{student_id}/analytics?course_id=
  -> totals across the student's progress records, optionally per course

Students may read only their own progress; teachers and admins read anyone's.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.dependencies import ensure_can_read, get_engine, require_user, to_http_error
from app.models.principal import Principal
from app.services.errors import ProgressError
from app.services.progress_engine import ProgressEngine

router = APIRouter(prefix="/v1/students", tags=["progress"])


@router.get("/{student_id}/courses/{course_id}/progress")
async def get_course_progress(
    student_id: int,
    course_id: int,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[ProgressEngine, Depends(get_engine)],
) -> dict:
    ensure_can_read(principal, student_id)
    try:
        return await engine.reporter.course_progress(student_id, course_id)
    except ProgressError as e:
        raise to_http_error(e) from None


@router.get("/{student_id}/analytics")
async def get_student_analytics(
    student_id: int,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[ProgressEngine, Depends(get_engine)],
    course_id: int | None = None,
) -> dict:
    ensure_can_read(principal, student_id)
    try:
        return await engine.reporter.student_analytics(student_id, course_id)
    except ProgressError as e:
        raise to_http_error(e) from None
