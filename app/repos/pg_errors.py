"""Translate SQLAlchemy failures into progress-engine errors."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.errors import RecordWriteError, StateConflictError, StorageError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def storage_errors(
    what: str, *, write: bool = False
) -> AsyncIterator[None]:
    """IntegrityError -> StateConflictError, other SQLAlchemyError -> StorageError.

    ``write=True`` raises RecordWriteError for the non-conflict case.
    """
    try:
        yield
    except IntegrityError as e:
        raise StateConflictError(f"{what}: unique constraint violated") from e
    except SQLAlchemyError as e:
        logger.error("Database error during %s: %s", what, e.__class__.__name__)
        if write:
            raise RecordWriteError(f"{what} failed") from e
        raise StorageError(f"{what} failed") from e


@asynccontextmanager
async def insert_savepoint(session: AsyncSession, what: str) -> AsyncIterator[None]:
    """Run an INSERT in a SAVEPOINT so a unique violation leaves the outer
    transaction usable for the caller's retry."""
    async with storage_errors(what, write=True):
        async with session.begin_nested():
            yield
