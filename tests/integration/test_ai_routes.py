from __future__ import annotations

from fastapi.testclient import TestClient

from klevr.api.app import create_app
from klevr.core.usage import current_month
from klevr.db.models import AiTask, GeneratedDocument, UsageTracking
from klevr.db.repositories import Repository
from klevr.db.session import SessionLocal


def _tasks(user_id: str) -> list[AiTask]:
    with SessionLocal() as session:
        return list(session.query(AiTask).filter_by(user_id=user_id))


def test_resume_request_creates_exactly_one_task(make_user, make_application) -> None:
    user, headers = make_user()
    make_application(user.id, application_id="app_1")
    client = TestClient(create_app())

    response = client.post("/api/ai/resume", json={"applicationId": "app_1"}, headers=headers)

    assert response.status_code == 200
    task_id = response.json()["taskId"]
    tasks = _tasks(user.id)
    assert [(task.id, task.type) for task in tasks] == [(task_id, "RESUME_GENERATION")]

    # Inline dispatch has already run the generation function.
    assert tasks[0].status == "SUCCEEDED"
    with SessionLocal() as session:
        document = session.get(GeneratedDocument, tasks[0].result_ref)
        assert document.type == "RESUME"
        assert document.prompt_version == "resume-generate-v1.0.0"
        assert document.model_used == "heuristic"
        assert Repository(session).get_usage(user.id, current_month()).resume_count == 1


def test_task_routes_hide_other_users_applications(make_user, make_application) -> None:
    owner, _ = make_user("auth0|owner", "owner@example.com")
    intruder, intruder_headers = make_user("auth0|intruder", "intruder@example.com")
    application = make_application(owner.id)
    client = TestClient(create_app())

    for path in ("/api/ai/resume", "/api/ai/cover-letter", "/api/ai/company-research"):
        response = client.post(path, json={"applicationId": application.id}, headers=intruder_headers)
        assert response.status_code == 404

    scoring = client.post("/api/ai/job-scoring", json={"applicationId": application.id}, headers=intruder_headers)
    assert scoring.status_code == 403
    assert _tasks(intruder.id) == []


def test_missing_application_id_is_a_bad_request(make_user) -> None:
    _, headers = make_user()
    client = TestClient(create_app())

    response = client.post("/api/ai/resume", json={"applicationId": ""}, headers=headers)

    assert response.status_code == 400
    assert "applicationId" in response.json()["error"]


def test_job_scoring_requires_confirmed_resume(make_user, make_application) -> None:
    user, headers = make_user(confirmed=False)
    application = make_application(user.id)
    client = TestClient(create_app())

    response = client.post("/api/ai/job-scoring", json={"applicationId": application.id}, headers=headers)

    assert response.status_code == 400
    assert _tasks(user.id) == []


def test_job_scoring_rescore_respects_monthly_limit(make_user, make_application) -> None:
    user, headers = make_user()
    application = make_application(user.id)
    with SessionLocal() as session:
        Repository(session).update_application(application.id, {"score_count": 2})
        session.add(UsageTracking(user_id=user.id, month=current_month(), fit_count=200))
        session.commit()
    client = TestClient(create_app())

    response = client.post("/api/ai/job-scoring", json={"applicationId": application.id}, headers=headers)

    assert response.status_code == 429
    assert _tasks(user.id) == []


def test_job_scoring_updates_application_fit(make_user, make_application) -> None:
    user, headers = make_user()
    application = make_application(user.id)
    client = TestClient(create_app())

    response = client.post("/api/ai/job-scoring", json={"applicationId": application.id}, headers=headers)
    assert response.status_code == 200

    task = client.get(f"/api/ai-tasks/{response.json()['taskId']}", headers=headers).json()
    assert task == {"status": "SUCCEEDED", "result_ref": application.id, "error_message": None}

    with SessionLocal() as session:
        scored = Repository(session).get_application(application.id)
        assert scored.score_count == 1
        assert scored.fit_bucket in {"EXCELLENT", "GOOD", "FAIR", "POOR"}
        assert "Python" in scored.matching_skills
        assert scored.score_explanation


def test_generation_over_limit_marks_task_failed(make_user, make_application) -> None:
    user, headers = make_user()
    application = make_application(user.id)
    with SessionLocal() as session:
        session.add(UsageTracking(user_id=user.id, month=current_month(), cover_letter_count=30))
        session.commit()
    client = TestClient(create_app())

    response = client.post("/api/ai/cover-letter", json={"applicationId": application.id}, headers=headers)

    assert response.status_code == 200
    task = client.get(f"/api/ai-tasks/{response.json()['taskId']}", headers=headers).json()
    assert task["status"] == "FAILED"
    assert "limit" in task["error_message"]
