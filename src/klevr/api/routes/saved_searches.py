from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from klevr.api.deps import get_db, require_user
from klevr.api.schemas import (
    SavedSearchCreateRequest,
    SavedSearchReplaceRequest,
    SavedSearchResponse,
    SavedSearchRunResponse,
    SavedSearchUpdateRequest,
)
from klevr.core.saved_searches import calculate_next_run_at
from klevr.db.models import SavedSearch, User
from klevr.db.repositories import Repository
from klevr.types import JobSearchQuery

router = APIRouter(prefix="/api/saved-searches", tags=["saved-searches"])

SCHEDULE_FIELDS = ("frequency", "schedule_time", "day_of_week", "day_of_month", "user_timezone")


def _query_config(raw: dict[str, Any]) -> dict[str, Any]:
    query = JobSearchQuery.model_validate(raw)
    return query.model_dump(exclude_none=True, exclude={"page", "results_per_page"})


def _next_run_at(values: dict[str, Any]) -> datetime:
    return calculate_next_run_at(
        values["frequency"],
        values["schedule_time"],
        day_of_week=values.get("day_of_week"),
        day_of_month=values.get("day_of_month"),
        timezone=values.get("user_timezone"),
    )


def _owned_search(repo: Repository, saved_search_id: str, user: User) -> SavedSearch:
    search = repo.get_owned_saved_search(saved_search_id, user.id)
    if search is None:
        raise HTTPException(status_code=404, detail="Saved search not found")
    return search


@router.get("", response_model=list[SavedSearchResponse])
def list_saved_searches(user: User = Depends(require_user), db: Session = Depends(get_db)) -> list[SavedSearchResponse]:
    return [SavedSearchResponse.model_validate(row) for row in Repository(db).list_saved_searches(user.id)]


@router.post("", response_model=SavedSearchResponse, status_code=201)
def create_saved_search(
    payload: SavedSearchCreateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> SavedSearchResponse:
    values = payload.model_dump(exclude={"name"})
    try:
        values["query_config"] = _query_config(payload.query_config)
        values["next_run_at"] = _next_run_at(values)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    search = Repository(db).create_saved_search(user_id=user.id, name=payload.name.strip(), values=values)
    return SavedSearchResponse.model_validate(search)


@router.get("/{saved_search_id}")
def get_saved_search(saved_search_id: str, user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    repo = Repository(db)
    search = _owned_search(repo, saved_search_id, user)
    return {
        **SavedSearchResponse.model_validate(search).model_dump(mode="json"),
        "runs": [
            SavedSearchRunResponse.model_validate(run).model_dump(mode="json")
            for run in repo.list_saved_search_runs(search.id)
        ],
    }


@router.patch("/{saved_search_id}", response_model=SavedSearchResponse)
def update_saved_search(
    saved_search_id: str,
    payload: SavedSearchUpdateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> SavedSearchResponse:
    repo = Repository(db)
    search = _owned_search(repo, saved_search_id, user)

    values = payload.model_dump(exclude_unset=True)
    for key in ("name", "frequency", "schedule_time", "notify_in_app"):
        if key in values and values[key] is None:
            values.pop(key)
    if "name" in values:
        values["name"] = values["name"].strip()

    try:
        if values.get("query_config") is not None:
            values["query_config"] = _query_config(values["query_config"])
        if any(key in values for key in SCHEDULE_FIELDS):
            schedule = {key: getattr(search, key) for key in SCHEDULE_FIELDS}
            schedule.update({key: values[key] for key in SCHEDULE_FIELDS if key in values})
            values["next_run_at"] = _next_run_at(schedule)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return SavedSearchResponse.model_validate(repo.update_saved_search(search.id, values))


@router.delete("/{saved_search_id}")
def delete_saved_search(saved_search_id: str, user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    repo = Repository(db)
    search = _owned_search(repo, saved_search_id, user)
    # Soft delete; run history stays readable.
    repo.update_saved_search(search.id, {"active": False})
    return {"success": True}


@router.get("/{saved_search_id}/results")
def get_saved_search_results(
    saved_search_id: str,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> dict:
    repo = Repository(db)
    search = _owned_search(repo, saved_search_id, user)
    latest = repo.latest_saved_search_run(search.id)
    if latest is None:
        return {"run": None, "jobs": [], "message": "This search has not been run yet"}

    return {
        "run": SavedSearchRunResponse.model_validate(latest).model_dump(mode="json"),
        "jobIds": latest.job_ids,
        "newJobsCount": latest.new_jobs_count,
        "totalJobsFound": latest.total_jobs_found,
    }


@router.post("/{saved_search_id}/replace", response_model=SavedSearchResponse)
def replace_saved_search(
    saved_search_id: str,
    payload: SavedSearchReplaceRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> SavedSearchResponse:
    repo = Repository(db)
    search = _owned_search(repo, saved_search_id, user)

    values = payload.model_dump()
    values["name"] = payload.name.strip()
    try:
        values["query_config"] = _query_config(payload.query_config)
        values["next_run_at"] = _next_run_at(values)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    values.update({"last_run_at": None, "active": True})

    return SavedSearchResponse.model_validate(repo.update_saved_search(search.id, values))
