from __future__ import annotations

import asyncio

import pytest

from app.models.interaction import (
    GenericInteraction,
    MaterialViewed,
    VideoHeartbeat,
    parse_interaction,
)
from app.models.material import MaterialRef
from app.models.progress import ProgressStatus
from app.services.errors import NotFoundError
from app.services.progress_engine import ProgressEngine
from tests.conftest import START, FakeClock

VIDEO = MaterialRef("intro-video")


def test_first_interaction_creates_record(engine: ProgressEngine) -> None:
    record = asyncio.run(
        engine.recorder.record_interaction(7, 1, 10, VIDEO, MaterialViewed())
    )
    assert record.status is ProgressStatus.IN_PROGRESS
    assert record.attempts == 1
    assert record.started_at == START
    assert record.interaction_data["action"] == "viewed"
    assert "timestamp" in record.interaction_data


def test_later_interactions_merge_shallowly(
    engine: ProgressEngine, clock: FakeClock
) -> None:
    async def scenario():
        await engine.recorder.record_interaction(
            7, 1, 10, VIDEO, VideoHeartbeat(last_video_position=12.5)
        )
        clock.advance(30)
        return await engine.recorder.record_interaction(
            7, 1, 10, VIDEO, GenericInteraction("playback_rate", {"rate": 1.5})
        )

    record = asyncio.run(scenario())
    assert record.attempts == 2
    assert record.last_accessed_at == START + 30
    assert record.started_at == START
    assert record.interaction_data["last_video_position"] == 12.5
    assert record.interaction_data["rate"] == 1.5
    assert record.interaction_data["action"] == "playback_rate"


def test_recording_never_completes(engine: ProgressEngine) -> None:
    async def scenario():
        for _ in range(5):
            await engine.recorder.record_interaction(
                7, 1, 10, VIDEO, VideoHeartbeat(last_video_position=999.0)
            )
        return await engine.stores.progress.get(7, VIDEO)

    record = asyncio.run(scenario())
    assert record is not None
    assert record.status is ProgressStatus.IN_PROGRESS
    assert record.progress_percentage == 0.0


def test_concurrent_first_interactions_create_one_record(engine: ProgressEngine) -> None:
    async def scenario():
        await asyncio.gather(
            *(
                engine.recorder.record_interaction(7, 1, 10, VIDEO, MaterialViewed())
                for _ in range(10)
            )
        )
        return await engine.stores.progress.list_for_student(7, None)

    records = asyncio.run(scenario())
    assert len(records) == 1
    assert records[0].attempts == 10


def test_parse_interaction_picks_specific_kinds() -> None:
    assert isinstance(parse_interaction({"last_video_position": 3}), VideoHeartbeat)
    assert isinstance(parse_interaction({"action": "viewed"}), MaterialViewed)
    generic = parse_interaction({"action": "bookmark", "page": 4})
    assert isinstance(generic, GenericInteraction)
    assert generic.payload() == {"page": 4}


def test_parse_interaction_rejects_bad_video_position() -> None:
    with pytest.raises(ValueError):
        parse_interaction({"last_video_position": "soon"})
    with pytest.raises(ValueError):
        parse_interaction({"last_video_position": -1})


@pytest.mark.parametrize(
    ("course_id", "section_id"),
    [(1, 11), (1, 999), (2, 10)],
)
def test_material_outside_its_section_is_rejected_without_write(
    engine: ProgressEngine, course_id: int, section_id: int
) -> None:
    async def scenario():
        with pytest.raises(NotFoundError):
            await engine.recorder.record_interaction(
                7, course_id, section_id, VIDEO, MaterialViewed()
            )
        return await engine.stores.progress.get(7, VIDEO)

    assert asyncio.run(scenario()) is None
