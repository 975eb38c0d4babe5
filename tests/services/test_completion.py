from __future__ import annotations

import pytest

from app.models.material import ContentType
from app.services.completion import clamp_percentage, is_complete


@pytest.mark.parametrize(
    ("progress", "expected"),
    [(89.0, False), (89.99, False), (90.0, True), (100.0, True)],
)
def test_video_completes_at_ninety_percent(progress: float, expected: bool) -> None:
    assert is_complete(ContentType.VIDEO, progress, None) is expected


@pytest.mark.parametrize(
    "content_type",
    [ContentType.TEXT, ContentType.DOCUMENT, ContentType.INTERACTIVE, ContentType.ASSIGNMENT],
)
def test_other_types_need_full_progress(content_type: ContentType) -> None:
    assert is_complete(content_type, 99.9, None) is False
    assert is_complete(content_type, 100.0, None) is True


def test_quiz_uses_score_not_progress() -> None:
    assert is_complete(ContentType.QUIZ, 100.0, None, 70) is False
    assert is_complete(ContentType.QUIZ, 0.0, 70.0, 70) is True
    assert is_complete(ContentType.QUIZ, 100.0, 69.99, 70) is False


def test_unknown_type_falls_back_to_full_progress() -> None:
    assert is_complete(None, 99.0, 100.0) is False
    assert is_complete(None, 100.0, None) is True


def test_every_content_type_has_a_rule() -> None:
    for content_type in ContentType:
        # Must not raise KeyError.
        is_complete(content_type, 0.0, None)


@pytest.mark.parametrize(
    ("raw", "clamped"),
    [(150, 100.0), (-10, 0.0), (42.5, 42.5), (0, 0.0), (100, 100.0)],
)
def test_clamp_percentage(raw: float, clamped: float) -> None:
    assert clamp_percentage(raw) == clamped
