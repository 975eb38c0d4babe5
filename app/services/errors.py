"""Exceptions raised by the progress engine.

The API layer maps them to status codes:

  ValidationError       422  malformed input, rejected before any write
  InvalidMaterialError  400  material missing or of the wrong content type
  NotFoundError         404  unknown course/section/student reference
  StateConflictError    409  only if internal retries are exhausted
  StorageError          503  persistence failure; never swallowed
"""

from __future__ import annotations


class ProgressError(Exception):
    pass


class ValidationError(ProgressError, ValueError):
    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(ProgressError, LookupError):
    pass


class InvalidMaterialError(NotFoundError):
    pass


class StateConflictError(ProgressError):
    """A write would violate a one-row-per-key invariant."""


class StorageError(ProgressError):
    pass


class RecordWriteError(StorageError):
    pass
