from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from klevr.api.deps import get_db, get_storage, require_user
from klevr.api.schemas import DeleteAccountRequest
from klevr.config import get_settings
from klevr.core.storage import ObjectStorage, StorageError
from klevr.core.usage import usage_summary
from klevr.db.models import User
from klevr.db.repositories import Repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/usage")
def get_usage(user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    return usage_summary(Repository(db), user.id)


@router.post("/delete-account")
def delete_account(
    payload: DeleteAccountRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> JSONResponse:
    repo = Repository(db)
    keys = repo.list_user_document_keys(user.id)
    repo.delete_user(user.id)
    logger.info("Deleted account %s with %s stored documents", user.id, len(keys))

    for key in keys:
        try:
            storage.delete(key)
        except StorageError as exc:
            logger.warning("Could not remove stored document %s: %s", key, exc)

    response = JSONResponse({"success": True, "message": "Account deleted successfully"})
    response.delete_cookie(get_settings().session_cookie_name)
    return response
