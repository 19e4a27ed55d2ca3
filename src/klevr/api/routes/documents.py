from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from klevr.api.deps import get_db, get_storage, require_user
from klevr.api.schemas import DocumentResponse, DownloadResponse, RenameDocumentRequest
from klevr.config import get_settings
from klevr.core.activity import log_activity
from klevr.core.documents import normalize_display_name
from klevr.core.storage import ObjectStorage
from klevr.db.models import GeneratedDocument, User
from klevr.db.repositories import Repository

router = APIRouter(prefix="/api/documents", tags=["documents"])


def _owned_document(repo: Repository, document_id: str, user: User) -> GeneratedDocument:
    document = repo.get_owned_document(document_id, user.id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


def _application_owner_document(repo: Repository, document_id: str, user: User) -> GeneratedDocument:
    document = repo.get_document_for_application_owner(document_id, user.id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(document_id: str, user: User = Depends(require_user), db: Session = Depends(get_db)) -> DocumentResponse:
    return DocumentResponse.model_validate(_owned_document(Repository(db), document_id, user))


@router.get("/{document_id}/download", response_model=DownloadResponse)
def download_document(
    document_id: str,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> DownloadResponse:
    document = _owned_document(Repository(db), document_id, user)
    ttl = get_settings().download_url_ttl_sec
    return DownloadResponse(url=storage.generate_download_url(document.storage_url, ttl), expires_in=ttl)


@router.post("/{document_id}/restore")
def restore_document(document_id: str, user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    repo = Repository(db)
    document = _application_owner_document(repo, document_id, user)
    repo.set_document_deleted(document, deleted=False)
    return {"success": True}


@router.delete("/{document_id}")
def delete_document(document_id: str, user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    repo = Repository(db)
    document = _application_owner_document(repo, document_id, user)
    repo.set_document_deleted(document, deleted=True)
    log_activity(
        repo,
        user_id=user.id,
        application_id=document.application_id,
        type="DOCUMENT_DELETED",
        metadata={"document_id": document.id, "document_type": document.type},
    )
    return {"success": True}


@router.patch("/{document_id}/rename", response_model=DocumentResponse)
def rename_document(
    document_id: str,
    payload: RenameDocumentRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> DocumentResponse:
    try:
        name = normalize_display_name(payload.name)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    repo = Repository(db)
    document = _application_owner_document(repo, document_id, user)
    return DocumentResponse.model_validate(repo.rename_document(document, name))
