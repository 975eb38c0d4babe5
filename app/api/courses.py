"""Course endpoints.

  Client -> POST /v1/courses/{courseId}/enroll
  -> insert course_student(enrolled)
  -> 201 Enrolled

  Staff  -> GET /v1/courses/{courseId}/analytics
  -> totals across enrolled students' progress

Course completion is written later by the course aggregator; enrolling is
not required for progress to be tracked.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from app.api.dependencies import get_engine, require_staff, require_student, to_http_error
from app.models.principal import Principal
from app.models.progress import CourseEnrollment, EnrollmentStatus
from app.services.errors import ProgressError, StateConflictError
from app.services.progress_engine import ProgressEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class EnrollmentOut(BaseModel):
    student_id: int
    course_id: int
    status: str
    enrolled_at: int
    completed_at: int | None


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_course(
    course_id: int,
    student_id: Annotated[int, Depends(require_student)],
    engine: Annotated[ProgressEngine, Depends(get_engine)],
) -> EnrollmentOut:
    try:
        if await engine.stores.structure.get_course_outline(course_id) is None:
            logger.warning("Enroll rejected: course %s not found", course_id)
            raise HTTPException(status_code=404, detail="course not found")

        enrollment = CourseEnrollment(
            student_id=student_id,
            course_id=course_id,
            status=EnrollmentStatus.ENROLLED,
            enrolled_at=engine.clock(),
        )
        await engine.stores.enrollments.add(enrollment)
    except StateConflictError:
        logger.warning(
            "Enroll rejected: student=%s already in course=%s", student_id, course_id
        )
        raise HTTPException(status_code=409, detail="already enrolled") from None
    except ProgressError as e:
        raise to_http_error(e) from None

    logger.info("Student %s enrolled in course %s", student_id, course_id)
    return EnrollmentOut(
        student_id=enrollment.student_id,
        course_id=enrollment.course_id,
        status=enrollment.status.value,
        enrolled_at=enrollment.enrolled_at,
        completed_at=enrollment.completed_at,
    )


@router.get("/{course_id}/analytics")
async def get_course_analytics(
    course_id: int,
    _staff: Annotated[Principal, Depends(require_staff)],
    engine: Annotated[ProgressEngine, Depends(get_engine)],
) -> dict:
    try:
        return await engine.reporter.course_analytics(course_id)
    except ProgressError as e:
        raise to_http_error(e) from None
