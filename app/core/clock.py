from __future__ import annotations

import datetime
from collections.abc import Callable

Clock = Callable[[], int]


def epoch_now() -> int:
    """Current UTC time as integer UNIX seconds."""
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def to_iso(epoch_seconds: int) -> str:
    return datetime.datetime.fromtimestamp(epoch_seconds, datetime.UTC).isoformat()
