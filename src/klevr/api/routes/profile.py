from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from klevr.api.deps import get_db, require_user
from klevr.api.schemas import ProfileResponse, ProfileUpdateRequest, UserResponse
from klevr.db.models import User
from klevr.db.repositories import Repository

router = APIRouter(prefix="/api/profile", tags=["profile"])


def _profile_body(user: User, repo: Repository) -> dict:
    profile = repo.get_profile(user.id)
    return {
        "user": UserResponse.model_validate(user).model_dump(mode="json"),
        "profile": ProfileResponse.model_validate(profile).model_dump(mode="json") if profile else None,
    }


@router.get("")
def get_profile(user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    return _profile_body(user, Repository(db))


@router.patch("")
def update_profile(
    payload: ProfileUpdateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> dict:
    repo = Repository(db)
    values = payload.model_dump(exclude_none=True)
    if values:
        repo.upsert_profile(user.id, values)
    return _profile_body(user, repo)
