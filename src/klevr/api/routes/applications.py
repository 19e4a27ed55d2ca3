from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from klevr.api.deps import get_db, require_user
from klevr.api.schemas import (
    ActivityResponse,
    ApplicationResponse,
    ApplicationStatusRequest,
    BulkUpdateRequest,
    DocumentResponse,
    JobResponse,
    NoteResponse,
)
from klevr.core.activity import log_status_change
from klevr.db.models import Application, User
from klevr.db.repositories import Repository

router = APIRouter(prefix="/api/applications", tags=["applications"])


def _owned_application(repo: Repository, application_id: str, user: User) -> Application:
    application = repo.get_owned_application(application_id, user.id)
    if application is None:
        raise HTTPException(status_code=404, detail="Application not found")
    return application


@router.get("/{application_id}")
def get_application(application_id: str, user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    repo = Repository(db)
    application = _owned_application(repo, application_id, user)
    job = repo.get_job(application.job_id)
    return {
        **ApplicationResponse.model_validate(application).model_dump(mode="json"),
        "job": JobResponse.model_validate(job).model_dump(mode="json"),
        "documents": [
            DocumentResponse.model_validate(document).model_dump(mode="json")
            for document in repo.list_application_documents(application.id)
        ],
        "notes": [NoteResponse.model_validate(note).model_dump(mode="json") for note in repo.list_notes(application.id)],
    }


@router.patch("/{application_id}/status", response_model=ApplicationResponse)
def update_status(
    application_id: str,
    payload: ApplicationStatusRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> ApplicationResponse:
    repo = Repository(db)
    result = repo.set_application_status(application_id, user.id, payload.status)
    if result is None:
        raise HTTPException(status_code=404, detail="Application not found")

    application, previous = result
    if previous != application.status:
        log_status_change(
            repo,
            user_id=user.id,
            application_id=application.id,
            from_status=previous,
            to_status=application.status,
        )
    return ApplicationResponse.model_validate(application)


@router.get("/{application_id}/timeline")
def get_timeline(application_id: str, user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    repo = Repository(db)
    application = _owned_application(repo, application_id, user)
    activities = [ActivityResponse.model_validate(row).model_dump(mode="json") for row in repo.list_activity(application.id)]
    return {"activities": activities, "total": len(activities)}


@router.post("/bulk-update")
def bulk_update(payload: BulkUpdateRequest, user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    repo = Repository(db)
    application_ids = list(dict.fromkeys(payload.applicationIds))
    owned = repo.list_owned_applications(application_ids, user.id)
    if len(owned) != len(application_ids):
        raise HTTPException(status_code=404, detail="Some applications not found or do not belong to you")

    if payload.action == "update_status":
        status = payload.data.status if payload.data else None
        if status is None:
            raise HTTPException(status_code=400, detail="Status is required for update_status action")

        previous = {application.id: application.status for application in owned}
        count = repo.bulk_set_application_status(application_ids, status)
        for application_id, from_status in previous.items():
            if from_status != status:
                log_status_change(
                    repo, user_id=user.id, application_id=application_id, from_status=from_status, to_status=status
                )
        return {"success": True, "action": "update_status", "count": count, "status": status}

    count = repo.delete_applications(application_ids)
    return {"success": True, "action": "delete", "count": count}
