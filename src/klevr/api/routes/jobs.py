from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from klevr.api.deps import get_db, get_event_client, get_job_search, require_user
from klevr.api.schemas import (
    AdzunaJobSaveRequest,
    ApplicationResponse,
    CheckSavedRequest,
    DocumentResponse,
    JobCreateRequest,
    JobResponse,
    JobUpdateRequest,
    NoteResponse,
)
from klevr.config import get_settings
from klevr.core.activity import log_activity
from klevr.core.ai_tasks import create_ai_task
from klevr.core.job_search import JobSearchClient, JobSearchError
from klevr.db.models import Job, User
from klevr.db.repositories import Repository
from klevr.functions.client import EventClient
from klevr.types import JobSearchQuery

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post("", status_code=201)
def create_job(
    payload: JobCreateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    events: EventClient = Depends(get_event_client),
) -> dict:
    description = payload.job_description_raw.strip()
    job_url = (payload.job_url or "").strip() or None
    if not description and not job_url:
        raise HTTPException(status_code=400, detail="Either job description or job URL is required")

    repo = Repository(db)
    profile = repo.get_profile(user.id)
    if profile is None or profile.parsed_resume_confirmed_at is None:
        raise HTTPException(status_code=400, detail="Please complete your profile and confirm your resume first")

    job, application = repo.create_job_with_application(
        user_id=user.id,
        values={
            "title": payload.title,
            "company": payload.company,
            "location": payload.location or None,
            "job_source": payload.job_source,
            "job_url": job_url,
            "job_description_raw": description,
        },
    )
    log_activity(repo, user_id=user.id, application_id=application.id, type="JOB_CREATED")

    task_id = None
    try:
        if job_url and len(description) < get_settings().min_description_length:
            events.send(
                "job/scrape-description",
                {"jobId": job.id, "userId": user.id, "applicationId": application.id},
            )
        else:
            task_id = create_ai_task(
                repo, events, user_id=user.id, type="JOB_SCORING", application_id=application.id
            )
    except Exception:
        logger.exception("Failed to start fit assessment for application %s", application.id)

    return {
        "job": JobResponse.model_validate(repo.get_job(job.id)).model_dump(mode="json"),
        "application": ApplicationResponse.model_validate(repo.get_application(application.id)).model_dump(mode="json"),
        "taskId": task_id,
    }


@router.get("")
def list_jobs(
    status: str | None = None,
    fit_bucket: str | None = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> dict:
    rows, total = Repository(db).list_applications(
        user.id, status=status, fit_bucket=fit_bucket, limit=limit, offset=offset
    )
    return {
        "applications": [
            {
                **ApplicationResponse.model_validate(application).model_dump(mode="json"),
                "job": JobResponse.model_validate(job).model_dump(mode="json"),
            }
            for application, job in rows
        ],
        "total": total,
    }


@router.get("/search")
def search_jobs(
    what: str | None = None,
    what_exclude: str | None = None,
    where: str | None = None,
    salary_min: int | None = None,
    full_time: int | None = None,
    permanent: int | None = None,
    results_per_page: int = 10,
    page: int = Query(1, ge=1),
    sort_by: str = "date",
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    search: JobSearchClient = Depends(get_job_search),
) -> dict:
    try:
        query = JobSearchQuery(
            what=what or None,
            what_exclude=what_exclude or None,
            where=where or None,
            salary_min=salary_min,
            full_time=1 if full_time == 1 else None,
            permanent=1 if permanent == 1 else None,
            results_per_page=results_per_page,
            page=page,
            sort_by=sort_by,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid search parameters") from exc

    try:
        result = search.search(query)
    except JobSearchError as exc:
        logger.error("Job search failed for user %s: %s", user.id, exc)
        if exc.rate_limited:
            raise HTTPException(
                status_code=429, detail="Search rate limit exceeded. Please try again in a few minutes."
            ) from exc
        raise HTTPException(
            status_code=503, detail="Job search service is temporarily unavailable. Please try again later."
        ) from exc

    log_activity(
        Repository(db),
        user_id=user.id,
        application_id=None,
        type="SEARCH_PERFORMED",
        metadata={
            "keywords": query.what,
            "location": query.where,
            "filters": {"salary_min": query.salary_min, "full_time": query.full_time, "permanent": query.permanent},
            "results_count": result.count,
        },
    )
    return result.model_dump()


@router.post("/from-adzuna", status_code=201, response_model=None)
def save_adzuna_job(
    payload: AdzunaJobSaveRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    events: EventClient = Depends(get_event_client),
) -> dict | JSONResponse:
    repo = Repository(db)
    profile = repo.get_profile(user.id)
    if profile is None or profile.parsed_resume_confirmed_at is None:
        raise HTTPException(
            status_code=400, detail="Please complete your profile and confirm your resume before saving jobs"
        )

    existing = repo.find_saved_adzuna_job(user.id, payload.adzuna_id)
    if existing is not None:
        job, application = existing
        return JSONResponse(
            {"error": "This job is already in your pipeline", "jobId": job.id, "applicationId": application.id},
            status_code=409,
        )

    job, application = repo.create_job_with_application(
        user_id=user.id,
        values={
            "title": payload.title,
            "company": payload.company,
            "location": payload.location or None,
            "job_source": "ADZUNA",
            "adzuna_id": payload.adzuna_id,
            "job_url": str(payload.job_url),
            "job_description_raw": payload.job_description_raw,
            "listing_details": payload.model_dump(
                include={"salary_min", "salary_max", "contract_type", "contract_time"}, exclude_none=True
            ),
        },
    )
    log_activity(
        repo,
        user_id=user.id,
        application_id=application.id,
        type="JOB_DISCOVERED",
        metadata={"source": "adzuna", "adzuna_id": payload.adzuna_id},
    )

    task_id = None
    try:
        task_id = create_ai_task(repo, events, user_id=user.id, type="JOB_SCORING", application_id=application.id)
    except Exception:
        logger.exception("Failed to start fit assessment for application %s", application.id)

    return {
        "job": JobResponse.model_validate(repo.get_job(job.id)).model_dump(mode="json"),
        "application": ApplicationResponse.model_validate(repo.get_application(application.id)).model_dump(mode="json"),
        "taskId": task_id,
    }


@router.post("/check-saved")
def check_saved(payload: CheckSavedRequest, user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    return {"savedIds": Repository(db).saved_adzuna_ids(user.id, payload.adzunaIds)}


def _owned_job(repo: Repository, job_id: str, user: User) -> Job:
    job = repo.get_owned_job(job_id, user.id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get("/{job_id}")
def get_job(job_id: str, user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    repo = Repository(db)
    job = _owned_job(repo, job_id, user)
    applications = []
    for application in repo.list_job_applications(job.id):
        applications.append(
            {
                **ApplicationResponse.model_validate(application).model_dump(mode="json"),
                "documents": [
                    DocumentResponse.model_validate(document).model_dump(mode="json")
                    for document in repo.list_application_documents(application.id)
                ],
                "notes": [
                    NoteResponse.model_validate(note).model_dump(mode="json") for note in repo.list_notes(application.id)
                ],
            }
        )
    return {**JobResponse.model_validate(job).model_dump(mode="json"), "applications": applications}


@router.patch("/{job_id}")
def update_job(
    job_id: str,
    payload: JobUpdateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> dict:
    repo = Repository(db)
    job = _owned_job(repo, job_id, user)

    values = payload.model_dump(exclude_unset=True)
    # Title, company and description cannot be blanked.
    for key in ("title", "company", "job_description_raw"):
        if key in values and not (values[key] or "").strip():
            values.pop(key)
    if "job_source" in values and values["job_source"] is None:
        values.pop("job_source")

    if values:
        repo.update_job(job.id, values)
    return {"success": True}


@router.delete("/{job_id}")
def delete_job(job_id: str, user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    if not Repository(db).delete_owned_job(job_id, user.id):
        raise HTTPException(status_code=404, detail="Job not found")
    logger.info("Deleted job %s for user %s", job_id, user.id)
    return {"success": True}
