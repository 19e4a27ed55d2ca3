from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from klevr.api.deps import get_db, get_event_client, require_user
from klevr.api.schemas import TaskCreateRequest, TaskCreateResponse
from klevr.core.ai_tasks import create_ai_task
from klevr.core.usage import has_remaining_usage
from klevr.db.models import User
from klevr.db.repositories import Repository
from klevr.functions.client import EventClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


def _start_task(
    repo: Repository,
    events: EventClient,
    *,
    user: User,
    task_type: str,
    application_id: str,
) -> TaskCreateResponse:
    try:
        task_id = create_ai_task(repo, events, user_id=user.id, type=task_type, application_id=application_id)
    except Exception as exc:
        logger.exception("Failed to start %s task for application %s", task_type, application_id)
        raise HTTPException(status_code=400, detail=str(exc) or "Failed to start task") from exc
    return TaskCreateResponse(taskId=task_id)


def _owned_application_or_404(repo: Repository, application_id: str, user: User) -> None:
    if repo.get_owned_application(application_id, user.id) is None:
        raise HTTPException(status_code=404, detail="Application not found")


@router.post("/resume", response_model=TaskCreateResponse)
def generate_resume(
    payload: TaskCreateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    events: EventClient = Depends(get_event_client),
) -> TaskCreateResponse:
    repo = Repository(db)
    _owned_application_or_404(repo, payload.applicationId, user)
    return _start_task(repo, events, user=user, task_type="RESUME_GENERATION", application_id=payload.applicationId)


@router.post("/cover-letter", response_model=TaskCreateResponse)
def generate_cover_letter(
    payload: TaskCreateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    events: EventClient = Depends(get_event_client),
) -> TaskCreateResponse:
    repo = Repository(db)
    _owned_application_or_404(repo, payload.applicationId, user)
    return _start_task(
        repo, events, user=user, task_type="COVER_LETTER_GENERATION", application_id=payload.applicationId
    )


@router.post("/company-research", response_model=TaskCreateResponse)
def research_company(
    payload: TaskCreateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    events: EventClient = Depends(get_event_client),
) -> TaskCreateResponse:
    repo = Repository(db)
    _owned_application_or_404(repo, payload.applicationId, user)
    return _start_task(repo, events, user=user, task_type="COMPANY_RESEARCH", application_id=payload.applicationId)


@router.post("/job-scoring", response_model=TaskCreateResponse)
def score_job(
    payload: TaskCreateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    events: EventClient = Depends(get_event_client),
) -> TaskCreateResponse:
    repo = Repository(db)
    application = repo.get_application(payload.applicationId)
    if application is None:
        raise HTTPException(status_code=404, detail="Application not found")
    if application.user_id != user.id:
        raise HTTPException(status_code=403, detail="Forbidden")

    # The initial assessment and first re-score are free.
    if application.score_count >= 2 and not has_remaining_usage(repo, user.id, "JOB_SCORING"):
        raise HTTPException(
            status_code=429,
            detail="Monthly job scoring limit exceeded. Upgrade or wait until next month.",
        )

    profile = repo.get_profile(user.id)
    if profile is None or profile.parsed_resume_confirmed_at is None:
        raise HTTPException(status_code=400, detail="Please confirm your resume before scoring jobs")

    return _start_task(repo, events, user=user, task_type="JOB_SCORING", application_id=payload.applicationId)
