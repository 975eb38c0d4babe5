from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from app.models.material import MaterialRef


class ProgressStatus(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class SectionStatus(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class EnrollmentStatus(StrEnum):
    ENROLLED = "enrolled"
    ACTIVE = "active"
    COMPLETED = "completed"
    DROPPED = "dropped"


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """Per-(student, material) progress; the ground truth for aggregation.

    At most one record exists per (student_id, material).  Written by the
    InteractionRecorder (creation, telemetry) and the ProgressUpdater
    (percentage, time, score, status).
    """

    student_id: int
    course_id: int
    section_id: int
    material: MaterialRef
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    progress_percentage: float = 0.0
    time_spent: int = 0  # seconds, accumulated
    score: float | None = None
    attempts: int = 0
    interaction_data: dict[str, object] = field(default_factory=dict)
    started_at: int | None = None
    completed_at: int | None = None
    last_accessed_at: int | None = None

    @staticmethod
    def new(
        *,
        student_id: int,
        course_id: int,
        section_id: int,
        material: MaterialRef,
        interaction_data: dict[str, object],
        now: int,
    ) -> ProgressRecord:
        return ProgressRecord(
            student_id=student_id,
            course_id=course_id,
            section_id=section_id,
            material=material,
            status=ProgressStatus.IN_PROGRESS,
            attempts=1,
            interaction_data=dict(interaction_data),
            started_at=now,
            last_accessed_at=now,
        )

    @property
    def is_completed(self) -> bool:
        return self.status is ProgressStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class SectionProgress:
    """Derived section state.  Only the SectionAggregator writes it."""

    student_id: int
    section_id: int
    status: SectionStatus = SectionStatus.NOT_STARTED
    started_at: int | None = None
    completed_at: int | None = None


@dataclass(frozen=True, slots=True)
class CourseEnrollment:
    """Student/course enrollment; completion fields owned by the CourseAggregator."""

    student_id: int
    course_id: int
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED
    enrolled_at: int = 0
    completed_at: int | None = None
