"""Interaction telemetry merged into ProgressRecord.interaction_data.

Each known event kind owns a fixed set of keys in the interaction bag
(``last_video_position``, ``quiz_answer_draft``, ``score`` ...).  Anything
else arrives as a GenericInteraction.  Merging is shallow: a later event's
keys overwrite earlier values for the same key and leave other keys alone.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass(frozen=True, slots=True)
class MaterialViewed:
    action: ClassVar[str] = "viewed"
    user_agent: str | None = None

    def payload(self) -> dict[str, object]:
        return {"user_agent": self.user_agent}


@dataclass(frozen=True, slots=True)
class VideoHeartbeat:
    action: ClassVar[str] = "video_heartbeat"
    last_video_position: float

    def payload(self) -> dict[str, object]:
        return {"last_video_position": self.last_video_position}


@dataclass(frozen=True, slots=True)
class ProgressReported:
    action: ClassVar[str] = "progress_updated"
    progress: float
    extra: Mapping[str, object] = field(default_factory=dict)

    def payload(self) -> dict[str, object]:
        data = {k: v for k, v in self.extra.items() if k not in _RESERVED_KEYS}
        data["progress"] = self.progress
        return data


@dataclass(frozen=True, slots=True)
class QuizAnswerDraft:
    action: ClassVar[str] = "quiz_answer_draft"
    answers: tuple[object, ...]

    def payload(self) -> dict[str, object]:
        return {"quiz_answer_draft": list(self.answers)}


@dataclass(frozen=True, slots=True)
class QuizSubmitted:
    action: ClassVar[str] = "quiz_submitted"
    score: float
    passed: bool
    time_taken: int
    answers: tuple[object, ...]

    def payload(self) -> dict[str, object]:
        return {
            "score": self.score,
            "passed": self.passed,
            "time_taken": self.time_taken,
            "answers": list(self.answers),
        }


@dataclass(frozen=True, slots=True)
class AssignmentSubmitted:
    action: ClassVar[str] = "assignment_submitted"
    submission_id: str
    submission_type: str

    def payload(self) -> dict[str, object]:
        return {
            "submission_id": self.submission_id,
            "submission_type": self.submission_type,
        }


@dataclass(frozen=True, slots=True)
class GenericInteraction:
    action: str
    data: Mapping[str, object] = field(default_factory=dict)

    def payload(self) -> dict[str, object]:
        return {k: v for k, v in self.data.items() if k not in _RESERVED_KEYS}


InteractionEvent = (
    MaterialViewed
    | VideoHeartbeat
    | ProgressReported
    | QuizAnswerDraft
    | QuizSubmitted
    | AssignmentSubmitted
    | GenericInteraction
)

# Written by to_interaction_data; payloads may not shadow them.
_RESERVED_KEYS = frozenset({"action", "timestamp"})


def to_interaction_data(event: InteractionEvent, timestamp: str) -> dict[str, object]:
    """Flatten an event into the key/value form stored on the record."""
    data: dict[str, object] = {"action": event.action}
    data.update(event.payload())
    data["timestamp"] = timestamp
    return data


def parse_interaction(raw: Mapping[str, object]) -> InteractionEvent:
    """Build the most specific event kind for a raw client payload.

    Raises ValueError when a known kind carries a value of the wrong type.
    """
    action = raw.get("action")
    rest = {k: v for k, v in raw.items() if k != "action"}

    if action == MaterialViewed.action:
        user_agent = raw.get("user_agent")
        return MaterialViewed(user_agent=str(user_agent) if user_agent else None)

    if action == VideoHeartbeat.action or (
        action is None and "last_video_position" in raw
    ):
        position = raw.get("last_video_position")
        if isinstance(position, bool) or not isinstance(position, (int, float)):
            raise ValueError("last_video_position must be a number")
        if position < 0:
            raise ValueError("last_video_position must be >= 0")
        return VideoHeartbeat(last_video_position=float(position))

    if action == QuizAnswerDraft.action or (
        action is None and "quiz_answer_draft" in raw
    ):
        draft = raw.get("quiz_answer_draft")
        if not isinstance(draft, list):
            raise ValueError("quiz_answer_draft must be a list")
        return QuizAnswerDraft(answers=tuple(draft))

    return GenericInteraction(action=str(action or "interaction"), data=rest)
