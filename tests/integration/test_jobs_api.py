from __future__ import annotations

from fastapi.testclient import TestClient

from klevr.api.app import create_app
from klevr.core.runtime import get_event_client

RESUME_TEXT = """Jordan Lee
jordan.lee@example.com | (555) 123-4567
Skills: Python, SQL, React, Docker
"""


def test_resume_parse_and_confirm_flow(make_user) -> None:
    _, headers = make_user("auth0|jordan", "jordan@example.com", confirmed=False)
    client = TestClient(create_app())

    parsed = client.post("/api/resume/parse", json={"text": RESUME_TEXT}, headers=headers)
    assert parsed.status_code == 200
    body = parsed.json()
    assert body["parsed_resume"]["personal"]["email"] == "jordan.lee@example.com"
    assert body["parsed_resume"]["skills"]["languages"] == ["Python", "SQL"]
    assert body["profile"]["parsed_resume_confirmed_at"] is None

    confirmed = client.post("/api/resume/confirm", json={}, headers=headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["profile"]["parsed_resume_confirmed_at"] is not None


def test_profile_update(make_user) -> None:
    _, headers = make_user()
    client = TestClient(create_app())

    response = client.patch("/api/profile", json={"major": "Statistics", "skills": ["R", "SQL"]}, headers=headers)

    assert response.status_code == 200
    assert response.json()["profile"]["major"] == "Statistics"
    assert response.json()["profile"]["skills"] == ["R", "SQL"]


def test_create_job_requires_confirmed_resume_and_content(make_user, job_description) -> None:
    _, unconfirmed = make_user("auth0|new", "new@example.com", confirmed=False)
    _, headers = make_user()
    client = TestClient(create_app())

    empty = client.post("/api/jobs", json={"title": "Analyst", "company": "Globex"}, headers=headers)
    assert empty.status_code == 400

    blocked = client.post(
        "/api/jobs",
        json={"title": "Analyst", "company": "Globex", "job_description_raw": job_description},
        headers=unconfirmed,
    )
    assert blocked.status_code == 400


def test_create_job_scores_and_lists(make_user, job_description) -> None:
    _, headers = make_user()
    client = TestClient(create_app())

    created = client.post(
        "/api/jobs",
        json={
            "title": "Software Engineer Intern",
            "company": "Globex",
            "location": "Remote",
            "job_description_raw": job_description,
        },
        headers=headers,
    )
    assert created.status_code == 201
    application_id = created.json()["application"]["id"]
    assert created.json()["application"]["status"] == "PLANNED"
    assert created.json()["taskId"]

    listing = client.get("/api/jobs", headers=headers).json()
    assert listing["total"] == 1
    assert listing["applications"][0]["job"]["company"] == "Globex"
    assert listing["applications"][0]["fit_bucket"] is not None

    detail = client.get(f"/api/applications/{application_id}", headers=headers).json()
    assert detail["documents"] == []
    assert detail["job"]["title"] == "Software Engineer Intern"

    timeline = client.get(f"/api/applications/{application_id}/timeline", headers=headers).json()
    assert {entry["type"] for entry in timeline["activities"]} == {"JOB_CREATED", "JOB_SCORING_COMPLETED"}
    assert timeline["total"] == 2


def test_short_description_with_url_triggers_scrape(make_user, monkeypatch) -> None:
    _, headers = make_user()
    sent = []
    monkeypatch.setattr(get_event_client(), "send", lambda name, data=None: sent.append((name, data)) or "evt")
    client = TestClient(create_app())

    created = client.post(
        "/api/jobs",
        json={"title": "Analyst", "company": "Globex", "job_url": "https://jobs.example.com/42"},
        headers=headers,
    )

    assert created.status_code == 201
    assert created.json()["taskId"] is None
    assert [name for name, _ in sent] == ["job/scrape-description"]
    assert sent[0][1]["jobId"] == created.json()["job"]["id"]


def test_status_change_stamps_applied_at_and_logs(make_user, make_application) -> None:
    user, headers = make_user()
    application = make_application(user.id)
    client = TestClient(create_app())

    updated = client.patch(f"/api/applications/{application.id}/status", json={"status": "APPLIED"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["status"] == "APPLIED"
    assert updated.json()["applied_at"] is not None

    invalid = client.patch(f"/api/applications/{application.id}/status", json={"status": "GHOSTED"}, headers=headers)
    assert invalid.status_code == 400

    timeline = client.get(f"/api/applications/{application.id}/timeline", headers=headers).json()
    assert timeline["activities"][0]["type"] == "STATUS_CHANGED"
    assert timeline["activities"][0]["metadata"] == {"from": "PLANNED", "to": "APPLIED"}


def test_applications_of_other_users_are_not_found(make_user, make_application) -> None:
    owner, _ = make_user("auth0|owner", "owner@example.com")
    _, intruder_headers = make_user("auth0|intruder", "intruder@example.com")
    application = make_application(owner.id)
    client = TestClient(create_app())

    assert client.get(f"/api/applications/{application.id}", headers=intruder_headers).status_code == 404
    assert (
        client.patch(
            f"/api/applications/{application.id}/status", json={"status": "APPLIED"}, headers=intruder_headers
        ).status_code
        == 404
    )


def test_usage_summary(make_user) -> None:
    _, headers = make_user()
    client = TestClient(create_app())

    usage = client.get("/api/settings/usage", headers=headers).json()["usage"]

    assert usage["JOB_SCORING"] == {"used": 0, "limit": 200, "percentage": 0}
    assert usage["RESUME_GENERATION"]["limit"] == 30
    assert usage["COVER_LETTER_GENERATION"]["limit"] == 30
    assert usage["COMPANY_RESEARCH"]["limit"] == 100


def test_saved_search_create_and_list(make_user) -> None:
    _, headers = make_user()
    client = TestClient(create_app())

    created = client.post(
        "/api/saved-searches",
        json={
            "name": "Remote data internships",
            "query_config": {"what": "data intern", "where": "remote"},
            "frequency": "WEEKLY",
            "schedule_time": "09:00",
            "day_of_week": 2,
        },
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["next_run_at"] is not None
    assert created.json()["query_config"] == {"what": "data intern", "where": "remote", "sort_by": "date"}

    bad_time = client.post(
        "/api/saved-searches",
        json={"name": "x", "query_config": {}, "schedule_time": "9am"},
        headers=headers,
    )
    assert bad_time.status_code == 400

    listing = client.get("/api/saved-searches", headers=headers).json()
    assert [item["name"] for item in listing] == ["Remote data internships"]


def test_job_detail_update_and_delete(make_user, make_application, make_document) -> None:
    user, headers = make_user()
    application = make_application(user.id)
    make_document(application.id)
    client = TestClient(create_app())

    detail = client.get(f"/api/jobs/{application.job_id}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["company"] == "Globex"
    assert [item["id"] for item in detail.json()["applications"]] == [application.id]
    assert len(detail.json()["applications"][0]["documents"]) == 1
    assert detail.json()["applications"][0]["notes"] == []

    updated = client.patch(
        f"/api/jobs/{application.job_id}", json={"title": "", "location": None, "company": "Initech"}, headers=headers
    )
    assert updated.json() == {"success": True}
    job = client.get(f"/api/jobs/{application.job_id}", headers=headers).json()
    assert job["title"] == "Software Engineer Intern"
    assert job["company"] == "Initech"
    assert job["location"] is None

    deleted = client.delete(f"/api/jobs/{application.job_id}", headers=headers)
    assert deleted.json() == {"success": True}
    assert client.get(f"/api/applications/{application.id}", headers=headers).status_code == 404
    assert client.delete(f"/api/jobs/{application.job_id}", headers=headers).status_code == 404


def test_jobs_of_other_users_are_not_found(make_user, make_application) -> None:
    owner, _ = make_user("auth0|owner", "owner@example.com")
    _, intruder_headers = make_user("auth0|intruder", "intruder@example.com")
    application = make_application(owner.id)
    client = TestClient(create_app())

    assert client.get(f"/api/jobs/{application.job_id}", headers=intruder_headers).status_code == 404
    assert (
        client.patch(f"/api/jobs/{application.job_id}", json={"title": "x"}, headers=intruder_headers).status_code
        == 404
    )
    assert client.delete(f"/api/jobs/{application.job_id}", headers=intruder_headers).status_code == 404


def test_bulk_status_update_logs_each_change(make_user, make_application) -> None:
    user, headers = make_user()
    first = make_application(user.id)
    second = make_application(user.id)
    client = TestClient(create_app())

    response = client.post(
        "/api/applications/bulk-update",
        json={"applicationIds": [first.id, second.id], "action": "update_status", "data": {"status": "APPLIED"}},
        headers=headers,
    )

    assert response.json() == {"success": True, "action": "update_status", "count": 2, "status": "APPLIED"}
    for application in (first, second):
        detail = client.get(f"/api/applications/{application.id}", headers=headers).json()
        assert detail["status"] == "APPLIED"
        assert detail["applied_at"] is not None
        timeline = client.get(f"/api/applications/{application.id}/timeline", headers=headers).json()
        assert timeline["activities"][0]["metadata"] == {"from": "PLANNED", "to": "APPLIED"}


def test_bulk_update_rules(make_user, make_application) -> None:
    user, headers = make_user()
    other, _ = make_user("auth0|other", "other@example.com")
    mine = make_application(user.id)
    theirs = make_application(other.id)
    client = TestClient(create_app())

    foreign = client.post(
        "/api/applications/bulk-update",
        json={"applicationIds": [mine.id, theirs.id], "action": "delete"},
        headers=headers,
    )
    assert foreign.status_code == 404

    missing_status = client.post(
        "/api/applications/bulk-update",
        json={"applicationIds": [mine.id], "action": "update_status"},
        headers=headers,
    )
    assert missing_status.status_code == 400
    assert missing_status.json() == {"error": "Status is required for update_status action"}

    assert (
        client.post(
            "/api/applications/bulk-update", json={"applicationIds": [], "action": "delete"}, headers=headers
        ).status_code
        == 400
    )

    deleted = client.post(
        "/api/applications/bulk-update", json={"applicationIds": [mine.id], "action": "delete"}, headers=headers
    )
    assert deleted.json() == {"success": True, "action": "delete", "count": 1}
    assert client.get(f"/api/applications/{mine.id}", headers=headers).status_code == 404
