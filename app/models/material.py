"""Learning material as seen by the progress engine.

Materials live in the content store and are referenced from the relational
side by an opaque string id.  ``MaterialRef`` wraps that id so it cannot be
mixed up with the integer course/section/student ids that travel through
the same call signatures.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

DEFAULT_PASSING_SCORE = 70.0


@dataclass(frozen=True, slots=True)
class MaterialRef:
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValueError("material id must be a non-empty string")

    def __str__(self) -> str:
        return self.value


class ContentType(StrEnum):
    TEXT = "text"
    VIDEO = "video"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    DOCUMENT = "document"
    INTERACTIVE = "interactive"

    @classmethod
    def parse(cls, raw: str | None) -> ContentType | None:
        """Map a stored content type to a member, or None if unrecognised."""
        if raw is None:
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


class QuestionType(StrEnum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    SHORT_ANSWER = "short_answer"
    ESSAY = "essay"


@dataclass(frozen=True, slots=True)
class QuizOption:
    text: str
    is_correct: bool = False


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    question_type: QuestionType
    question: str
    options: tuple[QuizOption, ...] = ()
    correct_answer: str | bool | None = None
    sample_answer: str | None = None
    explanation: str | None = None


@dataclass(frozen=True, slots=True)
class Material:
    ref: MaterialRef
    title: str
    content_type: ContentType | None  # None: stored type not recognised
    passing_score: float = DEFAULT_PASSING_SCORE
    questions: tuple[QuizQuestion, ...] = ()
    due_date: int | None = None
    is_active: bool = True

    @property
    def type_label(self) -> str:
        return self.content_type.value if self.content_type else "unknown"
