"""Demo: walk one student through the sample course using FastAPI TestClient.

Run with:
    python scripts/demo_progress_flow.py

Uses the in-memory stores (leave DATABASE_URL unset) seeded with course 1,
"Introduction to Python".
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app
from app.services import token_service

STUDENT_ID = 42
COURSE_ID = 1


def main() -> None:
    client = TestClient(app)
    token = token_service.create_access_token(sub=str(STUDENT_ID), roles=["student"])
    headers = {"Authorization": f"Bearer {token}"}
    s10 = {"course_id": COURSE_ID, "section_id": 10}
    s11 = {"course_id": COURSE_ID, "section_id": 11}

    # ── Step 1: enroll ──────────────────────────────────────────────
    r = client.post(f"/v1/courses/{COURSE_ID}/enroll", headers=headers)
    print(f"1. POST /enroll                    → {r.status_code}  status={r.json()['status']}")

    # ── Step 2: read the intro text ─────────────────────────────────
    client.post("/v1/materials/intro-text/view", json=s10, headers=headers)
    r = client.post(
        "/v1/materials/intro-text/progress",
        json={**s10, "progress_percentage": 100, "time_spent": 240},
        headers=headers,
    )
    print(f"2. intro-text progress 100%        → {r.status_code}  status={r.json()['status']}")

    # ── Step 3: watch most of the video ─────────────────────────────
    for pct, seconds in ((40, 200), (92, 260)):
        r = client.post(
            "/v1/materials/intro-video/progress",
            json={
                **s10,
                "progress_percentage": pct,
                "time_spent": seconds,
                "interaction_data": {"last_video_position": pct * 6.0},
            },
            headers=headers,
        )
        print(f"3. intro-video progress {pct:>3}%       → {r.status_code}  status={r.json()['status']}")

    # ── Step 4: fail, then pass the quiz ────────────────────────────
    for answers in ([0, "false", "size"], [1, "true", "len"]):
        r = client.post(
            "/v1/materials/basics-quiz/quiz-submit",
            json={**s11, "answers": answers, "time_taken": 90},
            headers=headers,
        )
        data = r.json()
        print(
            f"4. quiz attempt {data['attempt_number']}                 → {r.status_code}  "
            f"score={data['score']:.1f} passed={data['passed']}"
        )

    # ── Step 5: submit the assignment ───────────────────────────────
    r = client.post(
        "/v1/materials/first-program/assignment-submit",
        json={**s11, "submission_type": "text", "content": "print('Hello, world!')"},
        headers=headers,
    )
    print(f"5. assignment submit               → {r.status_code}  id={r.json()['submission_id']}")

    # ── Step 6: the roll-up ─────────────────────────────────────────
    r = client.get(f"/v1/students/{STUDENT_ID}/courses/{COURSE_ID}/progress", headers=headers)
    report = r.json()
    print(
        f"6. GET progress                    → {r.status_code}  "
        f"overall={report['overall_progress_percentage']}% "
        f"course={report['enrollment_status']}"
    )
    for section in report["sections"]:
        print(f"     section {section['section_id']} {section['title']:<26} {section['status']}")


if __name__ == "__main__":
    main()
