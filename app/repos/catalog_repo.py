"""Read-only views onto the content and course-structure stores.

The progress engine never writes materials, courses or sections; it only
asks which material a reference points at and which materials/sections
are required for completion.  Lookups are fallible: a missing material
is ``None``, never an exception.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import Protocol

from app.models.course import CourseOutline, SectionMaterialLink, SectionOutline
from app.models.material import (
    ContentType,
    Material,
    MaterialRef,
    QuestionType,
    QuizOption,
    QuizQuestion,
)


class MaterialCatalog(Protocol):
    async def get_material(self, ref: MaterialRef) -> Material | None: ...
    async def material_exists(self, ref: MaterialRef) -> bool: ...
    async def get_materials(
        self, refs: Sequence[MaterialRef]
    ) -> dict[MaterialRef, Material]: ...


class CourseStructure(Protocol):
    async def get_required_material_ids(self, section_id: int) -> list[MaterialRef]: ...
    async def get_required_section_ids(self, course_id: int) -> list[int]: ...
    async def get_course_outline(self, course_id: int) -> CourseOutline | None: ...
    async def material_in_section(
        self, course_id: int, section_id: int, ref: MaterialRef
    ) -> bool: ...


class InMemoryCatalog:
    """Satisfies both MaterialCatalog and CourseStructure."""

    def __init__(self) -> None:
        self._materials: dict[MaterialRef, Material] = {}
        self._courses: dict[int, CourseOutline] = {}
        self._section_course: dict[int, int] = {}

    # --- seeding helpers (tests, dev) ---

    def add_material(self, material: Material) -> None:
        self._materials[material.ref] = material

    def add_course(self, course_id: int, title: str) -> None:
        if course_id in self._courses:
            raise ValueError("course already exists")
        self._courses[course_id] = CourseOutline(course_id=course_id, title=title)

    def add_section(
        self,
        course_id: int,
        section_id: int,
        title: str,
        *,
        is_required: bool = True,
    ) -> None:
        course = self._courses[course_id]
        section = SectionOutline(
            section_id=section_id,
            title=title,
            position=len(course.sections) + 1,
            is_required=is_required,
        )
        self._courses[course_id] = replace(course, sections=course.sections + (section,))
        self._section_course[section_id] = course_id

    def link_material(
        self, section_id: int, ref: MaterialRef, *, is_required: bool = True
    ) -> None:
        course = self._courses[self._section_course[section_id]]
        sections = []
        for s in course.sections:
            if s.section_id == section_id:
                link = SectionMaterialLink(
                    material=ref, position=len(s.materials) + 1, is_required=is_required
                )
                s = replace(s, materials=s.materials + (link,))
            sections.append(s)
        self._courses[course.course_id] = replace(course, sections=tuple(sections))

    def clear(self) -> None:
        self._materials.clear()
        self._courses.clear()
        self._section_course.clear()

    # --- MaterialCatalog ---

    async def get_material(self, ref: MaterialRef) -> Material | None:
        return self._materials.get(ref)

    async def material_exists(self, ref: MaterialRef) -> bool:
        return ref in self._materials

    async def get_materials(
        self, refs: Sequence[MaterialRef]
    ) -> dict[MaterialRef, Material]:
        return {ref: self._materials[ref] for ref in refs if ref in self._materials}

    # --- CourseStructure ---

    async def get_required_material_ids(self, section_id: int) -> list[MaterialRef]:
        section = self._find_section(section_id)
        return section.required_materials() if section else []

    async def get_required_section_ids(self, course_id: int) -> list[int]:
        course = self._courses.get(course_id)
        return course.required_section_ids() if course else []

    async def get_course_outline(self, course_id: int) -> CourseOutline | None:
        return self._courses.get(course_id)

    async def material_in_section(
        self, course_id: int, section_id: int, ref: MaterialRef
    ) -> bool:
        if self._section_course.get(section_id) != course_id:
            return False
        section = self._find_section(section_id)
        return section is not None and any(m.material == ref for m in section.materials)

    def _find_section(self, section_id: int) -> SectionOutline | None:
        course_id = self._section_course.get(section_id)
        if course_id is None:
            return None
        for s in self._courses[course_id].sections:
            if s.section_id == section_id:
                return s
        return None


SAMPLE_COURSE_ID = 1


def seed_sample_course(catalog: InMemoryCatalog) -> None:
    """Seed a small course for development and tests.

    Course 1 has two required sections and one optional section:
      10 Getting Started           intro-text (text), intro-video (video)
      11 Check Your Understanding   basics-quiz (quiz), first-program (assignment)
      12 Further Reading           style-guide (document, optional section)
    """
    catalog.add_material(
        Material(
            ref=MaterialRef("intro-text"),
            title="What is Python?",
            content_type=ContentType.TEXT,
        )
    )
    catalog.add_material(
        Material(
            ref=MaterialRef("intro-video"),
            title="Installing Python",
            content_type=ContentType.VIDEO,
        )
    )
    catalog.add_material(
        Material(
            ref=MaterialRef("basics-quiz"),
            title="Python Basics Quiz",
            content_type=ContentType.QUIZ,
            passing_score=70,
            questions=(
                QuizQuestion(
                    question_type=QuestionType.MULTIPLE_CHOICE,
                    question="Which keyword defines a function?",
                    options=(
                        QuizOption("func"),
                        QuizOption("def", is_correct=True),
                        QuizOption("lambda"),
                    ),
                    explanation="Functions are defined with `def`.",
                ),
                QuizQuestion(
                    question_type=QuestionType.TRUE_FALSE,
                    question="Python lists are mutable.",
                    correct_answer="true",
                ),
                QuizQuestion(
                    question_type=QuestionType.FILL_BLANK,
                    question="The built-in that returns a sequence length is ___.",
                    correct_answer="len",
                ),
            ),
        )
    )
    catalog.add_material(
        Material(
            ref=MaterialRef("first-program"),
            title="Write Your First Program",
            content_type=ContentType.ASSIGNMENT,
        )
    )
    catalog.add_material(
        Material(
            ref=MaterialRef("style-guide"),
            title="PEP 8 Overview",
            content_type=ContentType.DOCUMENT,
        )
    )

    catalog.add_course(SAMPLE_COURSE_ID, "Introduction to Python")
    catalog.add_section(SAMPLE_COURSE_ID, 10, "Getting Started")
    catalog.add_section(SAMPLE_COURSE_ID, 11, "Check Your Understanding")
    catalog.add_section(SAMPLE_COURSE_ID, 12, "Further Reading", is_required=False)
    catalog.link_material(10, MaterialRef("intro-text"))
    catalog.link_material(10, MaterialRef("intro-video"))
    catalog.link_material(11, MaterialRef("basics-quiz"))
    catalog.link_material(11, MaterialRef("first-program"))
    catalog.link_material(12, MaterialRef("style-guide"), is_required=False)
