from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlparse
from uuid import UUID, uuid4

from app.core.clock import Clock, epoch_now
from app.core.metrics import ASSIGNMENT_SUBMISSIONS
from app.models.interaction import AssignmentSubmitted
from app.models.material import ContentType, Material, MaterialRef
from app.models.submission import AssignmentStatus, AssignmentSubmission, SubmissionType
from app.repos.catalog_repo import MaterialCatalog
from app.repos.submission_repo import AssignmentSubmissionRepo
from app.services.errors import InvalidMaterialError, ValidationError
from app.services.interaction_recorder import InteractionRecorder
from app.services.progress_updater import ProgressUpdater

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SubmissionPayload:
    submission_type: SubmissionType
    content: str | None = None
    file_path: str | None = None
    original_filename: str | None = None
    url: str | None = None

    def validate(self) -> None:
        """Exactly the fields belonging to submission_type may be set."""
        has_text = bool(self.content and self.content.strip())
        has_file = bool(self.file_path and self.file_path.strip())
        has_url = bool(self.url and self.url.strip())

        if self.submission_type is SubmissionType.TEXT:
            if not has_text:
                raise ValidationError("content is required for text submissions", field="content")
            if has_file or has_url or self.original_filename:
                raise ValidationError("text submissions carry content only", field="content")
        elif self.submission_type is SubmissionType.FILE:
            if not has_file:
                raise ValidationError("file_path is required for file submissions", field="file_path")
            if has_text or has_url:
                raise ValidationError(
                    "file submissions carry file_path and original_filename only",
                    field="file_path",
                )
        else:
            if not has_url:
                raise ValidationError("url is required for url submissions", field="url")
            if has_text or has_file or self.original_filename:
                raise ValidationError("url submissions carry url only", field="url")
            parsed = urlparse(self.url.strip())
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValidationError("url must be an http(s) URL", field="url")


@dataclass(frozen=True, slots=True)
class AssignmentReceipt:
    success: bool
    submission_id: UUID
    status: AssignmentStatus
    message: str = "Assignment submitted successfully"


class AssignmentService:
    def __init__(
        self,
        *,
        catalog: MaterialCatalog,
        updater: ProgressUpdater,
        recorder: InteractionRecorder,
        submissions: AssignmentSubmissionRepo,
        clock: Clock = epoch_now,
    ) -> None:
        self._catalog = catalog
        self._updater = updater
        self._recorder = recorder
        self._submissions = submissions
        self._clock = clock

    async def submit_assignment(
        self,
        student_id: int,
        course_id: int,
        section_id: int,
        material_ref: MaterialRef,
        payload: SubmissionPayload,
    ) -> AssignmentReceipt:
        material = await self._catalog.get_material(material_ref)
        if material is None or material.content_type is not ContentType.ASSIGNMENT:
            raise InvalidMaterialError("invalid assignment material")
        payload.validate()
        await self._recorder.ensure_placement(course_id, section_id, material_ref)

        now = self._clock()
        status = _submission_status(material, now)
        submission = AssignmentSubmission(
            id=uuid4(),
            student_id=student_id,
            material=material_ref,
            submission_type=payload.submission_type,
            submitted_at=now,
            status=status,
            content=payload.content if payload.submission_type is SubmissionType.TEXT else None,
            file_path=payload.file_path if payload.submission_type is SubmissionType.FILE else None,
            original_filename=(
                payload.original_filename
                if payload.submission_type is SubmissionType.FILE
                else None
            ),
            url=payload.url.strip() if payload.submission_type is SubmissionType.URL else None,
        )
        await self._submissions.add(submission)

        updated = await self._updater.update_progress(student_id, material_ref, 100, 0)
        await self._recorder.record_interaction(
            student_id,
            course_id,
            section_id,
            material_ref,
            AssignmentSubmitted(
                submission_id=str(submission.id),
                submission_type=payload.submission_type.value,
            ),
        )
        if not updated:
            # First touch: the interaction above created the record.
            await self._updater.update_progress(student_id, material_ref, 100, 0)

        ASSIGNMENT_SUBMISSIONS.labels(
            submission_type=payload.submission_type.value, status=status.value
        ).inc()
        logger.info(
            "Assignment submitted student=%s material=%s type=%s status=%s",
            student_id,
            material_ref,
            payload.submission_type.value,
            status.value,
            extra={"student_id": student_id, "material_id": str(material_ref)},
        )
        return AssignmentReceipt(success=True, submission_id=submission.id, status=status)


def _submission_status(material: Material, now: int) -> AssignmentStatus:
    if material.due_date is not None and now > material.due_date:
        return AssignmentStatus.LATE
    return AssignmentStatus.SUBMITTED
