"""
Pruebas de la superficie HTTP con TestClient: autenticación JWT, mapeo de
errores a códigos HTTP y reportes de administración.
"""
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from certhub.core.deps import get_clock
from certhub.core.security import create_access_token
from certhub.db.session import get_db
from certhub.main import app

from conftest import LEARNER_ID, OTHER_LEARNER_ID, START_TIME, seed_exam, seed_training


def parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def auth(learner_id: int = LEARNER_ID, role: str = None) -> dict:
    return {"Authorization": f"Bearer {create_access_token(learner_id, role=role)}"}


@pytest.fixture
def client(session_factory, clock):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_requires_token(client):
    response = client.get("/api/v1/my-exams")
    assert response.status_code == 401


def test_rejects_invalid_token(client):
    response = client.get("/api/v1/my-exams", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_server_clock(client):
    response = client.get("/api/v1/my-exams/clock", headers=auth())

    assert response.status_code == 200
    assert parse_time(response.json()["server_now"]) == START_TIME


def test_full_attempt_flow(session_factory, client, clock):
    exam = seed_exam(session_factory, duration_minutes=10)

    listing = client.get("/api/v1/my-exams", headers=auth())
    assert listing.status_code == 200
    assert listing.json()[0]["status"] == "not_started"

    start = client.post(f"/api/v1/my-exams/start/{exam.exam_id}", headers=auth())
    assert start.status_code == 200
    body = start.json()
    assert body["created"] is True
    assert parse_time(body["started_at"]) == START_TIME
    assert parse_time(body["ends_at"]) == START_TIME + timedelta(minutes=10)
    assert parse_time(body["server_now"]) == START_TIME
    attempt_id = body["attempt_id"]

    view = client.get(f"/api/v1/my-exams/attempt/{attempt_id}", headers=auth())
    assert view.status_code == 200
    assert view.json()["status"] == "in_progress"
    assert view.json()["remaining_seconds"] == 600
    for question in view.json()["questions"]:
        for choice in question["choices"]:
            assert "is_correct" not in choice

    for question_id, choice_id in exam.correct_choice.items():
        answer = client.post(
            f"/api/v1/my-exams/attempt/{attempt_id}/answer",
            json={"question_id": question_id, "choice_id": choice_id},
            headers=auth(),
        )
        assert answer.status_code == 200
        assert answer.json()["changed"] is True

    clock.advance(minutes=4)
    submit = client.post(f"/api/v1/my-exams/attempt/{attempt_id}/submit", headers=auth())
    assert submit.status_code == 200
    assert submit.json()["score"] == 100.0
    assert submit.json()["is_passed"] is True
    assert submit.json()["auto_submitted"] is False

    again = client.post(f"/api/v1/my-exams/attempt/{attempt_id}/submit", headers=auth())
    assert again.json() == submit.json()

    closed = client.post(
        f"/api/v1/my-exams/attempt/{attempt_id}/answer",
        json={"question_id": exam.question_ids[0], "choice_id": None},
        headers=auth(),
    )
    assert closed.status_code == 409
    assert closed.json()["detail"]["code"] == "ATTEMPT_CLOSED"

    retake = client.post(f"/api/v1/my-exams/start/{exam.exam_id}", headers=auth())
    assert retake.status_code == 409
    assert retake.json()["detail"]["code"] == "ALREADY_PASSED"


def test_start_blocked_by_pending_trainings(session_factory, client):
    exam = seed_exam(session_factory)
    seed_training(session_factory, training_id=3, progress=20)
    seed_training(session_factory, training_id=4)

    response = client.post(f"/api/v1/my-exams/start/{exam.exam_id}", headers=auth())

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "TRAININGS_NOT_COMPLETED"
    assert detail["incomplete_training_count"] == 2


def test_unknown_exam_and_foreign_attempt(session_factory, client):
    exam = seed_exam(session_factory)

    missing = client.post("/api/v1/my-exams/start/4040", headers=auth())
    assert missing.status_code == 404

    attempt_id = client.post(f"/api/v1/my-exams/start/{exam.exam_id}", headers=auth()).json()["attempt_id"]
    foreign = client.get(f"/api/v1/my-exams/attempt/{attempt_id}", headers=auth(OTHER_LEARNER_ID))
    assert foreign.status_code == 403


def test_invalid_choice_returns_400(session_factory, client):
    exam = seed_exam(session_factory)
    attempt_id = client.post(f"/api/v1/my-exams/start/{exam.exam_id}", headers=auth()).json()["attempt_id"]
    first_q, second_q = exam.question_ids

    response = client.post(
        f"/api/v1/my-exams/attempt/{attempt_id}/answer",
        json={"question_id": first_q, "choice_id": exam.correct_choice[second_q]},
        headers=auth(),
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_CHOICE"


def test_expired_attempt_view_reports_auto_submission(session_factory, client, clock):
    exam = seed_exam(session_factory, duration_minutes=1, pass_threshold=50.0)
    attempt_id = client.post(f"/api/v1/my-exams/start/{exam.exam_id}", headers=auth()).json()["attempt_id"]
    question_id = exam.question_ids[0]
    client.post(
        f"/api/v1/my-exams/attempt/{attempt_id}/answer",
        json={"question_id": question_id, "choice_id": exam.correct_choice[question_id]},
        headers=auth(),
    )

    clock.advance(seconds=61)
    view = client.get(f"/api/v1/my-exams/attempt/{attempt_id}", headers=auth()).json()

    assert view["status"] == "completed"
    assert view["auto_submitted"] is True
    assert view["score"] == 50.0
    assert view["is_passed"] is True


def test_admin_reports_require_admin_role(session_factory, client):
    exam = seed_exam(session_factory)
    attempt_id = client.post(f"/api/v1/my-exams/start/{exam.exam_id}", headers=auth()).json()["attempt_id"]
    client.post(f"/api/v1/my-exams/attempt/{attempt_id}/submit", headers=auth())

    forbidden = client.get("/api/v1/exams/attempts", headers=auth())
    assert forbidden.status_code == 403

    admin = auth(learner_id=1, role="admin")
    rows = client.get("/api/v1/exams/attempts", params={"exam_id": exam.exam_id}, headers=admin)
    assert rows.status_code == 200
    assert [row["attempt_id"] for row in rows.json()] == [attempt_id]

    review = client.get(f"/api/v1/exams/attempts/{attempt_id}/review", headers=admin)
    assert review.status_code == 200
    assert review.json()["score"] == 0.0
    assert all(question["is_correct"] is False for question in review.json()["questions"])

    missing = client.get("/api/v1/exams/attempts/999/review", headers=admin)
    assert missing.status_code == 404


def test_health_and_metrics(session_factory, client):
    exam = seed_exam(session_factory)
    client.post(f"/api/v1/my-exams/start/{exam.exam_id}", headers=auth())

    health = client.get("/api/v1/health")
    assert health.status_code == 200
    assert health.json()["services"]["database"]["status"] == "healthy"
    assert "X-Request-ID" in health.headers

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "certhub_exam_attempts_started_total" in metrics.text
