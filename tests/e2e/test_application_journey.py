from __future__ import annotations

from urllib.parse import urlparse

from fastapi.testclient import TestClient

from klevr.api.app import create_app
from klevr.client.task_stream import TaskStatusSubscription
from klevr.core.auth import issue_session_token

RESUME_TEXT = """Sam Patel
sam.patel@example.com
Software engineering student. Built REST services with Python, FastAPI and SQL.
Shipped React dashboards, deployed with Docker and Git workflows.
"""


def test_job_to_tailored_documents_journey(job_description) -> None:
    client = TestClient(create_app())
    client.headers.update(
        {"Authorization": f"Bearer {issue_session_token(sub='auth0|sam', email='sam.patel@example.com')}"}
    )

    assert client.post("/api/resume/parse", json={"text": RESUME_TEXT}).status_code == 200
    assert client.post("/api/resume/confirm", json={}).status_code == 200
    client.patch("/api/profile", json={"job_types": ["INTERNSHIP"], "preferred_locations": ["Remote"]})

    created = client.post(
        "/api/jobs",
        json={
            "title": "Software Engineer Intern",
            "company": "Globex",
            "location": "Remote",
            "job_description_raw": job_description,
        },
    )
    assert created.status_code == 201
    application_id = created.json()["application"]["id"]

    scoring = TaskStatusSubscription(client, created.json()["taskId"])
    assert scoring.watch() == "SUCCEEDED"
    assert scoring.result == application_id

    application = client.get(f"/api/applications/{application_id}").json()
    assert application["fit_bucket"] in {"EXCELLENT", "GOOD"}
    assert "Python" in application["matching_skills"]

    completed: list[str] = []
    resume_task = client.post("/api/ai/resume", json={"applicationId": application_id}).json()["taskId"]
    with TaskStatusSubscription(client, resume_task, on_complete=completed.append) as subscription:
        statuses = [update.status for update in subscription]
    assert statuses[-1] == "SUCCEEDED"
    assert len(completed) == 1

    document = client.get(f"/api/documents/{completed[0]}").json()
    assert document["type"] == "RESUME"
    assert document["display_name"].startswith("Sam Patel Software Engineer Intern Globex")

    download = client.get(f"/api/documents/{completed[0]}/download").json()
    url = urlparse(download["url"])
    markdown = client.get(f"{url.path}?{url.query}").text
    assert markdown.startswith("# Sam Patel")
    assert "## Skills" in markdown

    letter_task = client.post("/api/ai/cover-letter", json={"applicationId": application_id}).json()["taskId"]
    assert TaskStatusSubscription(client, letter_task).watch() == "SUCCEEDED"

    research_task = client.post("/api/ai/company-research", json={"applicationId": application_id}).json()["taskId"]
    assert TaskStatusSubscription(client, research_task).watch() == "SUCCEEDED"

    detail = client.get(f"/api/applications/{application_id}").json()
    assert sorted(doc["type"] for doc in detail["documents"]) == ["COVER_LETTER", "RESUME"]
    assert detail["company_research"]["overview"]

    timeline = {entry["type"] for entry in client.get(f"/api/applications/{application_id}/timeline").json()["activities"]}
    assert timeline == {
        "JOB_CREATED",
        "JOB_SCORING_COMPLETED",
        "RESUME_GENERATED",
        "COVER_LETTER_GENERATED",
        "COMPANY_RESEARCH_COMPLETED",
    }

    usage = client.get("/api/settings/usage").json()["usage"]
    assert usage["RESUME_GENERATION"]["used"] == 1
    assert usage["COVER_LETTER_GENERATION"]["used"] == 1
    assert usage["JOB_SCORING"]["used"] == 1
