"""Async SQLAlchemy engine and session factory for the progress store.

With DATABASE_URL set, progress records, section/course completion rows,
quiz attempts and assignment submissions live in PostgreSQL (asyncpg
driver).  Without it every export below is None and the progress engine
is built on the in-memory repositories instead (local dev, tests).
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by catalog and progress tables."""


if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session: commit on success, roll back on error.

    One session spans a whole progress write, so the material row, the
    section/course completion rows and any submission row commit together.
    """
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured, no database session")
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("No DATABASE_URL configured, progress is kept in memory")
        yield
        return

    logger.info("Database engine created: %s", engine.url.render_as_string(hide_password=True))
    yield
    await engine.dispose()
    logger.info("Database engine disposed")
