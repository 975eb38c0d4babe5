from __future__ import annotations

import json
import logging
import sys

from app.core.logging import _ContainerFormatter, _JsonFormatter


def _record(msg: str = "Material completed", args: tuple = (), **attrs) -> logging.LogRecord:
    record = logging.LogRecord(
        name="app.services.progress_updater",
        level=logging.INFO,
        pathname="progress_updater.py",
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record("Section %s done", (10,))))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "app.services.progress_updater"
    assert parsed["message"] == "Section 10 done"
    assert "timestamp" in parsed


def test_json_formatter_promotes_progress_context() -> None:
    record = _record(student_id=42, material_id="intro-video", request_id="abc-123")
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["student_id"] == 42
    assert parsed["material_id"] == "intro-video"
    assert parsed["request_id"] == "abc-123"
    assert "course_id" not in parsed


def test_json_formatter_includes_request_fields() -> None:
    record = _record(method="POST", path="/v1/materials/x/progress", duration_ms=3.5)
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["method"] == "POST"
    assert parsed["path"] == "/v1/materials/x/progress"
    assert parsed["duration_ms"] == 3.5


def test_json_formatter_includes_exception_info() -> None:
    try:
        raise RuntimeError("section store down")
    except RuntimeError:
        record = _record("Section aggregation failed")
        record.exc_info = sys.exc_info()
        output = _JsonFormatter().format(record)

    parsed = json.loads(output)
    assert "RuntimeError: section store down" in parsed["exception"]


def test_container_formatter_is_plain_text() -> None:
    output = _ContainerFormatter().format(_record("server started"))
    assert "INFO" in output
    assert "server started" in output
    assert not output.lstrip().startswith("{")
