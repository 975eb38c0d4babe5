from __future__ import annotations

import logging

from app.core.logging import (
    RequestContextFilter,
    _ContainerFormatter,
    request_id_var,
    setup_logging,
)


def _record(level: int = logging.INFO, msg: str = "hello", **attrs) -> logging.LogRecord:
    record = logging.LogRecord(
        name="app.services.progress_updater",
        level=level,
        pathname="progress_updater.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_noisy_libraries_at_debug() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_logging_installs_request_filter_on_handler() -> None:
    setup_logging("info")
    (handler,) = logging.getLogger().handlers
    assert any(isinstance(f, RequestContextFilter) for f in handler.filters)


def test_filter_copies_current_request_id() -> None:
    token = request_id_var.set("req-77")
    try:
        record = _record()
        RequestContextFilter().filter(record)
    finally:
        request_id_var.reset(token)
    assert record.request_id == "req-77"  # type: ignore[attr-defined]


def test_filter_keeps_explicit_request_id() -> None:
    record = _record(request_id="explicit")
    RequestContextFilter().filter(record)
    assert record.request_id == "explicit"  # type: ignore[attr-defined]


def test_filter_defaults_outside_a_request() -> None:
    record = _record()
    RequestContextFilter().filter(record)
    assert record.request_id == "-"  # type: ignore[attr-defined]


def test_formatter_location_suffix_only_from_warning() -> None:
    fmt = _ContainerFormatter()
    assert "[progress_updater.py:42]" not in fmt.format(_record(logging.INFO))
    assert "[progress_updater.py:42]" in fmt.format(_record(logging.WARNING))
    assert "[progress_updater.py:42]" in fmt.format(_record(logging.ERROR))
