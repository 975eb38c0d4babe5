from __future__ import annotations

import asyncio

import pytest

from app.models.interaction import MaterialViewed
from app.models.material import MaterialRef
from app.models.progress import CourseEnrollment
from app.services.cache import InMemoryCacheService
from app.services.errors import NotFoundError
from app.services.progress_engine import InMemoryStores, ProgressEngine
from tests.conftest import FakeClock

TEXT = MaterialRef("intro-text")
VIDEO = MaterialRef("intro-video")


async def _touch(engine: ProgressEngine, ref: MaterialRef, progress: float, seconds: int) -> None:
    await engine.recorder.record_interaction(7, 1, 10, ref, MaterialViewed())
    await engine.updater.update_progress(7, ref, progress, seconds)


def test_untouched_course_reports_zero(engine: ProgressEngine) -> None:
    report = asyncio.run(engine.reporter.course_progress(7, 1))
    assert report["course_title"] == "Introduction to Python"
    assert report["total_materials"] == 5
    assert report["completed_materials"] == 0
    assert report["overall_progress_percentage"] == 0.0
    assert report["average_score"] is None
    assert report["enrollment_status"] is None
    assert [s["section_id"] for s in report["sections"]] == [10, 11, 12]
    assert report["sections"][2]["is_required"] is False
    first = report["sections"][0]["materials"][0]
    assert first["material_id"] == "intro-text"
    assert first["status"] == "not_started"
    assert first["type"] == "text"


def test_report_reflects_progress(engine: ProgressEngine) -> None:
    async def scenario():
        await _touch(engine, TEXT, 100, 120)
        await _touch(engine, VIDEO, 95, 600)
        await engine.quizzes.submit_quiz(
            7, 1, 11, MaterialRef("basics-quiz"), [1, "true", "map"], 60
        )
        return await engine.reporter.course_progress(7, 1)

    report = asyncio.run(scenario())
    assert report["completed_materials"] == 2
    assert report["overall_progress_percentage"] == 40.0
    assert report["total_time_spent"] == 780
    assert report["total_time_spent_minutes"] == 13.0
    assert report["average_score"] == pytest.approx(66.67)
    getting_started, check, _ = report["sections"]
    assert getting_started["status"] == "completed"
    # Sections are rolled up on material completion only.
    assert check["status"] == "not_started"
    assert check["materials"][0]["attempts"] == 1


def test_report_is_cached_until_next_write(
    engine: ProgressEngine, cache: InMemoryCacheService
) -> None:
    async def scenario():
        first = await engine.reporter.course_progress(7, 1)
        cached = await cache.get("progress:7:1")
        await _touch(engine, TEXT, 50, 10)
        after_write = await cache.get("progress:7:1")
        second = await engine.reporter.course_progress(7, 1)
        return first, cached, after_write, second

    first, cached, after_write, second = asyncio.run(scenario())
    assert cached is not None
    assert after_write is None
    assert first["sections"][0]["materials"][0]["status"] == "not_started"
    assert second["sections"][0]["materials"][0]["status"] == "in_progress"


def test_unknown_course_raises(engine: ProgressEngine) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(engine.reporter.course_progress(7, 999))


def test_dangling_material_links_are_skipped(
    engine: ProgressEngine, stores: InMemoryStores
) -> None:
    stores.catalog.link_material(12, MaterialRef("deleted-reading"), is_required=False)
    report = asyncio.run(engine.reporter.course_progress(7, 1))
    assert report["total_materials"] == 5
    assert [m["material_id"] for m in report["sections"][2]["materials"]] == ["style-guide"]


def test_student_analytics(engine: ProgressEngine) -> None:
    async def scenario():
        await _touch(engine, TEXT, 100, 1800)
        await _touch(engine, VIDEO, 30, 1800)
        all_courses = await engine.reporter.student_analytics(7)
        other_course = await engine.reporter.student_analytics(7, 99)
        return all_courses, other_course

    analytics, empty = asyncio.run(scenario())
    assert analytics["total_materials"] == 2
    assert analytics["completed_materials"] == 1
    assert analytics["in_progress_materials"] == 1
    assert analytics["total_time_spent_hours"] == 1.0
    assert analytics["completion_rate"] == 50.0
    assert analytics["total_attempts"] == 2
    assert empty["total_materials"] == 0
    assert empty["completion_rate"] == 0.0


def test_course_analytics_covers_enrolled_students(
    engine: ProgressEngine, stores: InMemoryStores, clock: FakeClock
) -> None:
    async def scenario():
        await stores.enrollments.add(CourseEnrollment(student_id=7, course_id=1))
        await stores.enrollments.add(CourseEnrollment(student_id=8, course_id=1))
        await _touch(engine, TEXT, 100, 120)
        await _touch(engine, VIDEO, 50, 60)
        # Not enrolled, so left out of the totals.
        await engine.recorder.record_interaction(9, 1, 10, TEXT, MaterialViewed())
        today = await engine.reporter.course_analytics(1)
        clock.advance(86400)
        return today, await engine.reporter.course_analytics(1)

    today, tomorrow = asyncio.run(scenario())
    assert today["course_title"] == "Introduction to Python"
    assert today["total_enrollments"] == 2
    assert today["completed_students"] == 0
    assert today["total_students"] == 1
    assert today["active_students_today"] == 1
    assert today["total_interactions"] == 2
    assert today["completed_materials"] == 1
    assert today["average_progress"] == 75.0
    assert today["total_time_spent"] == 180
    assert today["total_time_spent_minutes"] == 3.0
    assert today["average_score"] is None
    assert tomorrow["active_students_today"] == 0
    assert tomorrow["total_students"] == 1


def test_course_analytics_for_unknown_course_raises(engine: ProgressEngine) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(engine.reporter.course_analytics(999))
