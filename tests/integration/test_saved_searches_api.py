from __future__ import annotations

from datetime import datetime

from fastapi.testclient import TestClient

from klevr.api.app import create_app
from klevr.db.repositories import Repository
from klevr.db.session import SessionLocal

SEARCH = {
    "name": "Remote data internships",
    "query_config": {"what": "data intern", "where": "remote"},
    "frequency": "DAILY",
    "schedule_time": "08:00",
    "user_timezone": "America/New_York",
}


def _create(client: TestClient, headers: dict[str, str], **overrides) -> dict:
    response = client.post("/api/saved-searches", json={**SEARCH, **overrides}, headers=headers)
    assert response.status_code == 201
    return response.json()


def test_detail_includes_recent_runs_and_latest_results(make_user) -> None:
    _, headers = make_user()
    client = TestClient(create_app())
    search = _create(client, headers)

    empty = client.get(f"/api/saved-searches/{search['id']}/results", headers=headers).json()
    assert empty == {"run": None, "jobs": [], "message": "This search has not been run yet"}

    with SessionLocal() as session:
        repo = Repository(session)
        repo.record_saved_search_run(saved_search_id=search["id"], status="FAILED", error_message="timeout")
        repo.record_saved_search_run(
            saved_search_id=search["id"], status="SUCCESS", job_ids=["a", "b"], new_jobs_count=2, total_jobs_found=40
        )

    detail = client.get(f"/api/saved-searches/{search['id']}", headers=headers).json()
    assert detail["name"] == "Remote data internships"
    assert [run["status"] for run in detail["runs"]] == ["SUCCESS", "FAILED"]

    results = client.get(f"/api/saved-searches/{search['id']}/results", headers=headers).json()
    assert results["jobIds"] == ["a", "b"]
    assert results["newJobsCount"] == 2
    assert results["totalJobsFound"] == 40
    assert results["run"]["status"] == "SUCCESS"


def test_patch_recomputes_schedule_only_when_it_changes(make_user) -> None:
    _, headers = make_user()
    client = TestClient(create_app())
    search = _create(client, headers)

    renamed = client.patch(f"/api/saved-searches/{search['id']}", json={"name": "  Data  "}, headers=headers).json()
    assert renamed["name"] == "Data"
    assert renamed["next_run_at"] == search["next_run_at"]

    weekly = client.patch(
        f"/api/saved-searches/{search['id']}",
        json={"frequency": "WEEKLY", "day_of_week": 3},
        headers=headers,
    ).json()
    assert weekly["frequency"] == "WEEKLY"
    assert weekly["schedule_time"] == "08:00"
    assert datetime.fromisoformat(weekly["next_run_at"]).isoweekday() == 3

    bad = client.patch(f"/api/saved-searches/{search['id']}", json={"schedule_time": "8 o'clock"}, headers=headers)
    assert bad.status_code == 400


def test_delete_is_a_soft_delete(make_user) -> None:
    _, headers = make_user()
    client = TestClient(create_app())
    search = _create(client, headers)

    assert client.delete(f"/api/saved-searches/{search['id']}", headers=headers).json() == {"success": True}

    detail = client.get(f"/api/saved-searches/{search['id']}", headers=headers).json()
    assert detail["active"] is False


def test_replace_overwrites_and_reactivates(make_user) -> None:
    _, headers = make_user()
    client = TestClient(create_app())
    search = _create(client, headers)
    client.delete(f"/api/saved-searches/{search['id']}", headers=headers)

    replaced = client.post(
        f"/api/saved-searches/{search['id']}/replace",
        json={
            "name": "Berlin backend",
            "query_config": {"what": "backend", "where": "berlin"},
            "frequency": "MONTHLY",
            "schedule_time": "07:30",
            "day_of_month": 31,
            "user_timezone": "Europe/Berlin",
        },
        headers=headers,
    )

    assert replaced.status_code == 200
    body = replaced.json()
    assert body["id"] == search["id"]
    assert body["name"] == "Berlin backend"
    assert body["query_config"] == {"what": "backend", "where": "berlin", "sort_by": "date"}
    assert body["active"] is True
    assert body["last_run_at"] is None
    assert body["next_run_at"] is not None

    incomplete = client.post(
        f"/api/saved-searches/{search['id']}/replace", json={"name": "x", "query_config": {}}, headers=headers
    )
    assert incomplete.status_code == 400


def test_saved_searches_of_other_users_are_not_found(make_user) -> None:
    _, owner_headers = make_user("auth0|owner", "owner@example.com")
    _, intruder_headers = make_user("auth0|intruder", "intruder@example.com")
    client = TestClient(create_app())
    search = _create(client, owner_headers)

    for method, suffix, body in (
        ("GET", "", None),
        ("PATCH", "", {"name": "mine now"}),
        ("DELETE", "", None),
        ("GET", "/results", None),
        ("POST", "/replace", {**SEARCH, "name": "mine now"}),
    ):
        url = f"/api/saved-searches/{search['id']}{suffix}"
        response = client.request(method, url, json=body, headers=intruder_headers)
        assert response.status_code == 404
        assert response.json() == {"error": "Saved search not found"}
