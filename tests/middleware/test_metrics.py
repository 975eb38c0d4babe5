"""Prometheus counters are process-global and never reset, so these tests
assert on deltas around each request."""

from __future__ import annotations

from fastapi.routing import APIRoute
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY
from starlette.requests import Request

from app.middleware.metrics import route_template
from tests.conftest import auth, mint_token


def _sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_requests_are_labelled_by_route_template(client: TestClient) -> None:
    labels = {
        "method": "POST",
        "endpoint": "/v1/materials/{material_id}/view",
        "status_code": "202",
    }
    before = _sample("http_requests_total", labels)
    for material_id in ("intro-text", "intro-video"):
        client.post(
            f"/v1/materials/{material_id}/view",
            json={"course_id": 1, "section_id": 10},
            headers=auth(mint_token()),
        )
    assert _sample("http_requests_total", labels) - before == 2


def test_unmatched_paths_share_one_label(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "unmatched", "status_code": "404"}
    before = _sample("http_requests_total", labels)
    client.get("/no/such/path")
    assert _sample("http_requests_total", labels) - before == 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    assert _sample("http_request_duration_seconds_count", labels) - before >= 1


def test_metrics_endpoint_exposes_progress_metrics(client: TestClient) -> None:
    client.post(
        "/v1/materials/intro-text/view",
        json={"course_id": 1, "section_id": 10},
        headers=auth(mint_token()),
    )
    client.post(
        "/v1/materials/intro-text/progress",
        json={"course_id": 1, "section_id": 10, "progress_percentage": 100},
        headers=auth(mint_token()),
    )
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert 'material_completions_total{content_type="text"}' in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _sample("http_requests_total", labels) == before


def test_route_template_reads_the_matched_route_from_scope() -> None:
    route = APIRoute("/v1/students/{student_id}/analytics", endpoint=lambda: None)
    matched = Request({"type": "http", "route": route})
    unmatched = Request({"type": "http"})
    assert route_template(matched) == "/v1/students/{student_id}/analytics"
    assert route_template(unmatched) == "unmatched"
