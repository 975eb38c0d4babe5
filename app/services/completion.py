"""Completion rules per content type.

A material counts as complete when its progress record satisfies the rule
for the material's content type:

  quiz        score present and >= the material's passing score
  video       progress >= 90  (credits watching past the end credits)
  assignment  progress >= 100 (set on submission)
  text        progress >= 100
  document    progress >= 100
  interactive progress >= 100

Materials whose stored type is not recognised fall back to >= 100.
"""

from __future__ import annotations

from collections.abc import Callable

from app.models.material import DEFAULT_PASSING_SCORE, ContentType

_Rule = Callable[[float, float | None, float], bool]

VIDEO_COMPLETION_THRESHOLD = 90.0
FULL = 100.0


def _fully_progressed(progress: float, score: float | None, passing: float) -> bool:
    return progress >= FULL


def _video(progress: float, score: float | None, passing: float) -> bool:
    return progress >= VIDEO_COMPLETION_THRESHOLD


def _quiz(progress: float, score: float | None, passing: float) -> bool:
    return score is not None and score >= passing


_RULES: dict[ContentType, _Rule] = {
    ContentType.QUIZ: _quiz,
    ContentType.VIDEO: _video,
    ContentType.ASSIGNMENT: _fully_progressed,
    ContentType.TEXT: _fully_progressed,
    ContentType.DOCUMENT: _fully_progressed,
    ContentType.INTERACTIVE: _fully_progressed,
}

_missing = set(ContentType) - set(_RULES)
if _missing:
    raise RuntimeError(f"no completion rule for content types: {sorted(_missing)}")


def is_complete(
    content_type: ContentType | None,
    progress_percentage: float,
    score: float | None,
    passing_score: float = DEFAULT_PASSING_SCORE,
) -> bool:
    rule = _RULES[content_type] if content_type is not None else _fully_progressed
    return rule(progress_percentage, score, passing_score)


def clamp_percentage(value: float) -> float:
    """Clamp a percentage (progress or score) into [0, 100]."""
    return max(0.0, min(FULL, float(value)))
