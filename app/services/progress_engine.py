"""Wiring for the progress engine.

``build_engine`` assembles every service around one set of stores.  Two
store sets exist:

  - ``memory_stores``: process-wide in-memory repositories, used when no
    DATABASE_URL is configured (dev, tests).  Seeded with a sample course.
  - a request-scoped set of Pg repositories sharing one AsyncSession, so a
    progress write and the roll-ups it triggers commit together.

``engine_scope`` picks between them and owns the transaction.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, nullcontext
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, epoch_now
from app.core.config import SETTINGS
from app.db.engine import async_session_factory
from app.repos.catalog_repo import (
    CourseStructure,
    InMemoryCatalog,
    MaterialCatalog,
    seed_sample_course,
)
from app.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from app.repos.pg_catalog_repo import PgCatalog
from app.repos.pg_enrollment_repo import PgEnrollmentRepo
from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.pg_section_progress_repo import PgSectionProgressRepo
from app.repos.pg_submission_repo import PgAssignmentSubmissionRepo, PgQuizSubmissionRepo
from app.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from app.repos.section_progress_repo import (
    InMemorySectionProgressRepo,
    SectionProgressRepo,
)
from app.repos.submission_repo import (
    AssignmentSubmissionRepo,
    InMemoryAssignmentSubmissionRepo,
    InMemoryQuizSubmissionRepo,
    QuizSubmissionRepo,
)
from app.services.aggregation import CourseAggregator, SectionAggregator
from app.services.assignment_service import AssignmentService
from app.services.cache import CacheService, cache_service
from app.services.interaction_recorder import InteractionRecorder
from app.services.locks import KeyedLock, keyed_lock
from app.services.progress_report import ProgressReporter
from app.services.progress_updater import ProgressUpdater, Savepoint
from app.services.quiz_grading import QuizService
from app.services.task_queue import TaskQueue, task_queue


@dataclass(frozen=True, slots=True)
class Stores:
    catalog: MaterialCatalog
    structure: CourseStructure
    progress: ProgressRepo
    sections: SectionProgressRepo
    enrollments: EnrollmentRepo
    quiz_submissions: QuizSubmissionRepo
    assignment_submissions: AssignmentSubmissionRepo


@dataclass(frozen=True, slots=True)
class ProgressEngine:
    stores: Stores
    recorder: InteractionRecorder
    updater: ProgressUpdater
    section_aggregator: SectionAggregator
    course_aggregator: CourseAggregator
    quizzes: QuizService
    assignments: AssignmentService
    reporter: ProgressReporter
    clock: Clock = epoch_now


def build_engine(
    stores: Stores,
    *,
    locks: KeyedLock = keyed_lock,
    cache: CacheService = cache_service,
    queue: TaskQueue = task_queue,
    clock: Clock = epoch_now,
    savepoint: Savepoint = nullcontext,
    retry_outbox: list[dict] | None = None,
    retry_attempts: int = SETTINGS.write_retry_attempts,
    cache_ttl: int = SETTINGS.progress_cache_ttl,
) -> ProgressEngine:
    sections = SectionAggregator(
        structure=stores.structure,
        progress=stores.progress,
        sections=stores.sections,
        locks=locks,
        clock=clock,
    )
    courses = CourseAggregator(
        structure=stores.structure,
        sections=stores.sections,
        enrollments=stores.enrollments,
        locks=locks,
        clock=clock,
    )
    recorder = InteractionRecorder(
        progress=stores.progress,
        structure=stores.structure,
        locks=locks,
        cache=cache,
        clock=clock,
        retry_attempts=retry_attempts,
    )
    updater = ProgressUpdater(
        progress=stores.progress,
        catalog=stores.catalog,
        section_aggregator=sections,
        course_aggregator=courses,
        locks=locks,
        cache=cache,
        queue=queue,
        clock=clock,
        savepoint=savepoint,
        retry_outbox=retry_outbox,
    )
    return ProgressEngine(
        stores=stores,
        recorder=recorder,
        updater=updater,
        section_aggregator=sections,
        course_aggregator=courses,
        quizzes=QuizService(
            catalog=stores.catalog,
            updater=updater,
            recorder=recorder,
            submissions=stores.quiz_submissions,
            locks=locks,
            clock=clock,
            retry_attempts=retry_attempts,
        ),
        assignments=AssignmentService(
            catalog=stores.catalog,
            updater=updater,
            recorder=recorder,
            submissions=stores.assignment_submissions,
            clock=clock,
        ),
        reporter=ProgressReporter(
            catalog=stores.catalog,
            structure=stores.structure,
            progress=stores.progress,
            sections=stores.sections,
            enrollments=stores.enrollments,
            cache=cache,
            cache_ttl=cache_ttl,
            clock=clock,
        ),
        clock=clock,
    )


class InMemoryStores:
    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Drop all progress and reseed the sample catalog."""
        self.catalog = InMemoryCatalog()
        self.progress = InMemoryProgressRepo()
        self.sections = InMemorySectionProgressRepo()
        self.enrollments = InMemoryEnrollmentRepo()
        self.quiz_submissions = InMemoryQuizSubmissionRepo()
        self.assignment_submissions = InMemoryAssignmentSubmissionRepo()
        seed_sample_course(self.catalog)

    def as_stores(self) -> Stores:
        return Stores(
            catalog=self.catalog,
            structure=self.catalog,
            progress=self.progress,
            sections=self.sections,
            enrollments=self.enrollments,
            quiz_submissions=self.quiz_submissions,
            assignment_submissions=self.assignment_submissions,
        )


memory_stores = InMemoryStores()


def pg_stores(session: AsyncSession) -> Stores:
    catalog = PgCatalog(session)
    return Stores(
        catalog=catalog,
        structure=catalog,
        progress=PgProgressRepo(session),
        sections=PgSectionProgressRepo(session),
        enrollments=PgEnrollmentRepo(session),
        quiz_submissions=PgQuizSubmissionRepo(session),
        assignment_submissions=PgAssignmentSubmissionRepo(session),
    )


@asynccontextmanager
async def engine_scope() -> AsyncIterator[ProgressEngine]:
    """Yield an engine; with a database, commit on success, roll back on error."""
    if async_session_factory is None:
        yield build_engine(memory_stores.as_stores())
        return

    async with async_session_factory() as session:
        # Aggregation retries wait for the commit; a rollback drops them.
        engine = build_engine(
            pg_stores(session),
            savepoint=session.begin_nested,
            retry_outbox=[],
        )
        try:
            yield engine
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    await engine.updater.flush_retries()
