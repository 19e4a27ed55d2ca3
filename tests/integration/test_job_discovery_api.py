from __future__ import annotations

from fastapi.testclient import TestClient

from klevr.api.app import create_app
from klevr.api.deps import get_job_search
from klevr.core.job_search import JobSearchError
from klevr.types import JobSearchHit, JobSearchResult

ADZUNA_JOB = {
    "adzuna_id": "4711",
    "title": "Data Engineering Intern",
    "company": "Globex",
    "location": "Remote",
    "job_url": "https://www.adzuna.com/details/4711",
    "job_description_raw": "Requirements: Python, SQL. Nice to have: Docker.",
    "salary_min": 40000,
    "contract_time": "full_time",
}


class FakeSearch:
    def __init__(self, error: JobSearchError | None = None):
        self.error = error
        self.queries = []

    def search(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return JobSearchResult(
            count=1, results=[JobSearchHit(id="4711", title="Data Engineering Intern", company="Globex")]
        )


def _client(search: FakeSearch) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_job_search] = lambda: search
    return TestClient(app)


def test_search_passes_filters_through(make_user) -> None:
    _, headers = make_user()
    search = FakeSearch()
    client = _client(search)

    response = client.get(
        "/api/jobs/search?what=data&where=remote&full_time=1&permanent=0&salary_min=30000", headers=headers
    )

    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert response.json()["results"][0]["id"] == "4711"
    query = search.queries[0]
    assert (query.what, query.where, query.salary_min) == ("data", "remote", 30000)
    assert query.full_time == 1
    assert query.permanent is None
    assert (query.results_per_page, query.page, query.sort_by) == (10, 1, "date")


def test_search_rejects_bad_parameters(make_user) -> None:
    _, headers = make_user()
    client = _client(FakeSearch())

    assert client.get("/api/jobs/search?results_per_page=80", headers=headers).status_code == 400
    assert client.get("/api/jobs/search?sort_by=relevance", headers=headers).status_code == 400


def test_search_failures_map_to_friendly_errors(make_user) -> None:
    _, headers = make_user()

    limited = _client(FakeSearch(JobSearchError("429", rate_limited=True))).get("/api/jobs/search", headers=headers)
    down = _client(FakeSearch(JobSearchError("Adzuna search failed"))).get("/api/jobs/search", headers=headers)

    assert limited.status_code == 429
    assert limited.json()["error"].startswith("Search rate limit exceeded")
    assert down.status_code == 503
    assert down.json()["error"].startswith("Job search service is temporarily unavailable")


def test_save_adzuna_job_creates_pipeline_entry_once(make_user) -> None:
    _, headers = make_user()
    client = _client(FakeSearch())

    saved = client.post("/api/jobs/from-adzuna", json=ADZUNA_JOB, headers=headers)
    assert saved.status_code == 201
    body = saved.json()
    assert body["job"]["job_source"] == "ADZUNA"
    assert body["job"]["adzuna_id"] == "4711"
    assert body["application"]["status"] == "PLANNED"
    assert body["taskId"]

    timeline = client.get(f"/api/applications/{body['application']['id']}/timeline", headers=headers).json()
    assert "JOB_DISCOVERED" in {entry["type"] for entry in timeline["activities"]}

    again = client.post("/api/jobs/from-adzuna", json=ADZUNA_JOB, headers=headers)
    assert again.status_code == 409
    assert again.json() == {
        "error": "This job is already in your pipeline",
        "jobId": body["job"]["id"],
        "applicationId": body["application"]["id"],
    }


def test_save_adzuna_job_requires_confirmed_resume_and_valid_url(make_user) -> None:
    _, unconfirmed = make_user("auth0|new", "new@example.com", confirmed=False)
    _, headers = make_user()
    client = _client(FakeSearch())

    blocked = client.post("/api/jobs/from-adzuna", json=ADZUNA_JOB, headers=unconfirmed)
    bad_url = client.post("/api/jobs/from-adzuna", json={**ADZUNA_JOB, "job_url": "not a url"}, headers=headers)

    assert blocked.status_code == 400
    assert bad_url.status_code == 400


def test_check_saved_only_reports_own_jobs(make_user) -> None:
    _, headers = make_user()
    _, other_headers = make_user("auth0|other", "other@example.com")
    client = _client(FakeSearch())
    client.post("/api/jobs/from-adzuna", json=ADZUNA_JOB, headers=headers)

    mine = client.post("/api/jobs/check-saved", json={"adzunaIds": ["4711", "9999"]}, headers=headers)
    theirs = client.post("/api/jobs/check-saved", json={"adzunaIds": ["4711"]}, headers=other_headers)
    too_many = client.post("/api/jobs/check-saved", json={"adzunaIds": [str(n) for n in range(51)]}, headers=headers)

    assert mine.json() == {"savedIds": ["4711"]}
    assert theirs.json() == {"savedIds": []}
    assert too_many.status_code == 400
