from __future__ import annotations

from dataclasses import dataclass

from app.models.material import MaterialRef


@dataclass(frozen=True, slots=True)
class SectionMaterialLink:
    material: MaterialRef
    position: int
    is_required: bool = True


@dataclass(frozen=True, slots=True)
class SectionOutline:
    section_id: int
    title: str
    position: int
    is_required: bool = True
    materials: tuple[SectionMaterialLink, ...] = ()

    def required_materials(self) -> list[MaterialRef]:
        return [link.material for link in self.materials if link.is_required]


@dataclass(frozen=True, slots=True)
class CourseOutline:
    """Ordered course structure as provided by the structural store."""

    course_id: int
    title: str
    sections: tuple[SectionOutline, ...] = ()

    def required_section_ids(self) -> list[int]:
        return [s.section_id for s in self.sections if s.is_required]
