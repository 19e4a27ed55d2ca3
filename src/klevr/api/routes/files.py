from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from klevr.api.deps import get_storage
from klevr.core.documents import MARKDOWN_CONTENT_TYPE
from klevr.core.storage import InvalidDownloadToken, LocalObjectStorage, ObjectStorage, StorageError

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{key:path}")
def download(
    key: str,
    token: str = Query(..., min_length=1),
    storage: ObjectStorage = Depends(get_storage),
) -> Response:
    if not isinstance(storage, LocalObjectStorage):
        raise HTTPException(status_code=404, detail="File not found")

    try:
        storage.verify_download_token(key, token)
    except InvalidDownloadToken as exc:
        raise HTTPException(status_code=403, detail="Invalid or expired download link") from exc

    try:
        data = storage.read(key)
    except (FileNotFoundError, StorageError) as exc:
        raise HTTPException(status_code=404, detail="File not found") from exc

    filename = key.rsplit("/", 1)[-1]
    return Response(
        content=data,
        media_type=MARKDOWN_CONTENT_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
