"""PostgreSQL-backed MaterialCatalog and CourseStructure.

Material specifics (quiz questions, passing score, due date) live in the
``content_data`` JSONB column, in the shape the content editor writes:

  {"passing_score": 70,
   "questions": [{"question_type": "multiple_choice", "question": "...",
                  "options": [{"text": "...", "is_correct": true}], ...}],
   "due_date": 1767225600}
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import (
    CourseRow,
    CourseSectionRow,
    LearningMaterialRow,
    SectionMaterialRow,
    SectionRow,
)
from app.models.course import CourseOutline, SectionMaterialLink, SectionOutline
from app.models.material import (
    DEFAULT_PASSING_SCORE,
    ContentType,
    Material,
    MaterialRef,
    QuestionType,
    QuizOption,
    QuizQuestion,
)
from app.repos.pg_errors import storage_errors

logger = logging.getLogger(__name__)


class PgCatalog:
    """Satisfies MaterialCatalog and CourseStructure."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_material(self, ref: MaterialRef) -> Material | None:
        found = await self.get_materials([ref])
        return found.get(ref)

    async def material_exists(self, ref: MaterialRef) -> bool:
        stmt = select(LearningMaterialRow.id).where(LearningMaterialRow.id == ref.value)
        async with storage_errors("material lookup"):
            return (await self._session.execute(stmt)).first() is not None

    async def get_materials(
        self, refs: Sequence[MaterialRef]
    ) -> dict[MaterialRef, Material]:
        if not refs:
            return {}
        stmt = select(LearningMaterialRow).where(
            LearningMaterialRow.id.in_([r.value for r in refs])
        )
        async with storage_errors("material lookup"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return {MaterialRef(r.id): _row_to_material(r) for r in rows}

    async def get_required_material_ids(self, section_id: int) -> list[MaterialRef]:
        stmt = (
            select(SectionMaterialRow.material_id)
            .where(SectionMaterialRow.section_id == section_id)
            .where(SectionMaterialRow.is_required.is_(True))
            .order_by(SectionMaterialRow.position)
        )
        async with storage_errors("section structure read"):
            ids = (await self._session.execute(stmt)).scalars().all()
        return [MaterialRef(i) for i in ids]

    async def get_required_section_ids(self, course_id: int) -> list[int]:
        stmt = (
            select(CourseSectionRow.section_id)
            .where(CourseSectionRow.course_id == course_id)
            .where(CourseSectionRow.is_required.is_(True))
            .order_by(CourseSectionRow.position)
        )
        async with storage_errors("course structure read"):
            return list((await self._session.execute(stmt)).scalars().all())

    async def material_in_section(
        self, course_id: int, section_id: int, ref: MaterialRef
    ) -> bool:
        stmt = (
            select(SectionMaterialRow.material_id)
            .join(
                CourseSectionRow,
                CourseSectionRow.section_id == SectionMaterialRow.section_id,
            )
            .where(CourseSectionRow.course_id == course_id)
            .where(SectionMaterialRow.section_id == section_id)
            .where(SectionMaterialRow.material_id == ref.value)
            .limit(1)
        )
        async with storage_errors("section structure read"):
            return (await self._session.execute(stmt)).first() is not None

    async def get_course_outline(self, course_id: int) -> CourseOutline | None:
        async with storage_errors("course structure read"):
            course = await self._session.get(CourseRow, course_id)
            if course is None:
                return None
            section_rows = (
                await self._session.execute(
                    select(CourseSectionRow, SectionRow)
                    .join(SectionRow, SectionRow.id == CourseSectionRow.section_id)
                    .where(CourseSectionRow.course_id == course_id)
                    .order_by(CourseSectionRow.position)
                )
            ).all()
            section_ids = [link.section_id for link, _ in section_rows]
            links = (
                (
                    await self._session.execute(
                        select(SectionMaterialRow)
                        .where(SectionMaterialRow.section_id.in_(section_ids))
                        .order_by(SectionMaterialRow.position)
                    )
                )
                .scalars()
                .all()
                if section_ids
                else []
            )

        by_section: dict[int, list[SectionMaterialLink]] = {}
        for link in links:
            by_section.setdefault(link.section_id, []).append(
                SectionMaterialLink(
                    material=MaterialRef(link.material_id),
                    position=link.position,
                    is_required=link.is_required,
                )
            )
        return CourseOutline(
            course_id=course.id,
            title=course.title,
            sections=tuple(
                SectionOutline(
                    section_id=section.id,
                    title=section.title,
                    position=cs.position,
                    is_required=cs.is_required,
                    materials=tuple(by_section.get(section.id, ())),
                )
                for cs, section in section_rows
            ),
        )


def _row_to_material(row: LearningMaterialRow) -> Material:
    data = row.content_data or {}
    content_type = ContentType.parse(row.content_type)
    if content_type is None:
        logger.warning(
            "Material %s has unrecognised content type %r", row.id, row.content_type
        )
    return Material(
        ref=MaterialRef(row.id),
        title=row.title,
        content_type=content_type,
        passing_score=float(data.get("passing_score", DEFAULT_PASSING_SCORE)),
        questions=tuple(_parse_question(q) for q in data.get("questions", ())),
        due_date=data.get("due_date"),
        is_active=row.is_active,
    )


def _parse_question(raw: dict) -> QuizQuestion:
    try:
        qtype = QuestionType(raw.get("question_type", ""))
    except ValueError:
        # Unknown question types are graded like essays: never auto-correct.
        qtype = QuestionType.ESSAY
    return QuizQuestion(
        question_type=qtype,
        question=str(raw.get("question", "")),
        options=tuple(
            QuizOption(text=str(o.get("text", "")), is_correct=bool(o.get("is_correct")))
            for o in raw.get("options", ())
        ),
        correct_answer=raw.get("correct_answer"),
        sample_answer=raw.get("sample_answer"),
        explanation=raw.get("explanation"),
    )
