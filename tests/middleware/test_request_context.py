from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    uuid.UUID(resp.headers["x-request-id"])


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "trace-abc-123"})
    assert resp.headers.get("x-request-id") == "trace-abc-123"


def test_request_id_present_on_rejected_requests(client: TestClient) -> None:
    resp = client.get("/v1/students/42/courses/1/progress")
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_request_is_logged_with_its_id(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="app.middleware.request_context"):
        client.get("/health", headers={"X-Request-ID": "log-me"})
    records = [r for r in caplog.records if r.name == "app.middleware.request_context"]
    assert records
    assert getattr(records[-1], "request_id", None) == "log-me"
    assert "GET /health -> 200" in records[-1].getMessage()
