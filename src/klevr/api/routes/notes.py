from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from klevr.api.deps import get_db, require_user
from klevr.api.schemas import NoteCreateRequest, NoteResponse, NoteUpdateRequest
from klevr.db.models import Note, User
from klevr.db.repositories import Repository

router = APIRouter(prefix="/api/notes", tags=["notes"])


def _owned_note(repo: Repository, note_id: str, user: User) -> Note:
    note = repo.get_owned_note(note_id, user.id)
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@router.post("", response_model=NoteResponse, status_code=201)
def create_note(
    payload: NoteCreateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> NoteResponse:
    repo = Repository(db)
    if not repo.list_owned_applications([payload.applicationId], user.id):
        raise HTTPException(status_code=404, detail="Application not found")
    return NoteResponse.model_validate(repo.create_note(application_id=payload.applicationId, content=payload.content))


@router.patch("/{note_id}", response_model=NoteResponse)
def update_note(
    note_id: str,
    payload: NoteUpdateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> NoteResponse:
    repo = Repository(db)
    note = _owned_note(repo, note_id, user)
    return NoteResponse.model_validate(repo.update_note(note, payload.content))


@router.delete("/{note_id}")
def delete_note(note_id: str, user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    repo = Repository(db)
    repo.delete_note(_owned_note(repo, note_id, user))
    return {"success": True}
