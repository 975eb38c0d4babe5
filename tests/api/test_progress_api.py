from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import auth, mint_token

S10 = {"course_id": 1, "section_id": 10}
S11 = {"course_id": 1, "section_id": 11}


def _student(sub: str = "42") -> dict[str, str]:
    return auth(mint_token(sub=sub, roles=["student"]))


def _complete_course(client: TestClient, headers: dict[str, str]) -> None:
    for material_id in ("intro-text", "intro-video"):
        client.post(
            f"/v1/materials/{material_id}/progress",
            json={**S10, "progress_percentage": 100, "time_spent": 60},
            headers=headers,
        )
    client.post(
        "/v1/materials/basics-quiz/quiz-submit",
        json={**S11, "answers": [1, "true", "len"], "time_taken": 60},
        headers=headers,
    )
    client.post(
        "/v1/materials/first-program/assignment-submit",
        json={**S11, "submission_type": "text", "content": "print('hi')"},
        headers=headers,
    )


def test_student_reads_own_progress(client: TestClient) -> None:
    resp = client.get("/v1/students/42/courses/1/progress", headers=_student())
    assert resp.status_code == 200
    data = resp.json()
    assert data["course_id"] == 1
    assert data["total_materials"] == 5
    assert data["overall_progress_percentage"] == 0.0


def test_student_cannot_read_another_student(client: TestClient) -> None:
    resp = client.get("/v1/students/43/courses/1/progress", headers=_student())
    assert resp.status_code == 403


def test_teacher_reads_any_student(client: TestClient) -> None:
    teacher = auth(mint_token(sub="5", roles=["teacher"]))
    resp = client.get("/v1/students/43/courses/1/progress", headers=teacher)
    assert resp.status_code == 200


def test_unknown_course_is_404(client: TestClient) -> None:
    resp = client.get("/v1/students/42/courses/999/progress", headers=_student())
    assert resp.status_code == 404


def test_progress_requires_auth(client: TestClient) -> None:
    assert client.get("/v1/students/42/courses/1/progress").status_code == 401


def test_completing_every_required_material_completes_course(client: TestClient) -> None:
    headers = _student()
    _complete_course(client, headers)

    data = client.get("/v1/students/42/courses/1/progress", headers=headers).json()
    assert data["enrollment_status"] == "completed"
    assert data["course_completed_at"] is not None
    assert data["completed_materials"] == 4
    assert data["overall_progress_percentage"] == 80.0
    statuses = {s["section_id"]: s["status"] for s in data["sections"]}
    assert statuses == {10: "completed", 11: "completed", 12: "not_started"}


def test_cached_report_refreshes_after_write(client: TestClient) -> None:
    headers = _student()
    before = client.get("/v1/students/42/courses/1/progress", headers=headers).json()
    client.post(
        "/v1/materials/intro-text/progress",
        json={**S10, "progress_percentage": 100},
        headers=headers,
    )
    after = client.get("/v1/students/42/courses/1/progress", headers=headers).json()
    assert before["completed_materials"] == 0
    assert after["completed_materials"] == 1


def test_students_are_isolated(client: TestClient) -> None:
    _complete_course(client, _student("42"))
    other = client.get("/v1/students/43/courses/1/progress", headers=_student("43")).json()
    assert other["completed_materials"] == 0
    assert other["enrollment_status"] is None


def test_analytics(client: TestClient) -> None:
    headers = _student()
    client.post(
        "/v1/materials/intro-text/progress",
        json={**S10, "progress_percentage": 100, "time_spent": 1800},
        headers=headers,
    )
    client.post(
        "/v1/materials/intro-video/progress",
        json={**S10, "progress_percentage": 50, "time_spent": 1800},
        headers=headers,
    )
    resp = client.get("/v1/students/42/analytics?course_id=1", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_materials"] == 2
    assert data["completed_materials"] == 1
    assert data["total_time_spent_hours"] == 1.0
    assert data["completion_rate"] == 50.0


def test_analytics_forbidden_for_other_students(client: TestClient) -> None:
    resp = client.get("/v1/students/43/analytics", headers=_student())
    assert resp.status_code == 403
