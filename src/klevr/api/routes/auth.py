from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import RedirectResponse

from klevr.config import get_settings
from klevr.core.auth import logout_url

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/logout")
def logout() -> RedirectResponse:
    settings = get_settings()
    response = RedirectResponse(url=logout_url(settings), status_code=302)
    response.delete_cookie(settings.session_cookie_name)
    return response
