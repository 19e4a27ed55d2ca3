from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from klevr.api.deps import get_db, get_llm, require_user
from klevr.api.schemas import ProfileResponse, ResumeConfirmRequest, ResumeParseRequest
from klevr.db.models import User
from klevr.db.repositories import Repository
from klevr.errors import AIError, RateLimitError
from klevr.llm.router import LLMRouter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resume", tags=["resume"])


@router.post("/parse")
def parse_resume(
    payload: ResumeParseRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    llm: LLMRouter = Depends(get_llm),
) -> dict:
    try:
        parsed = llm.parse_resume(user_id=user.id, text=payload.text)
    except RateLimitError as exc:
        raise HTTPException(status_code=429, detail=exc.message) from exc
    except AIError as exc:
        logger.warning("Resume parsing failed for user %s: %s", user.id, exc)
        raise HTTPException(status_code=503, detail="Resume parsing is temporarily unavailable") from exc

    repo = Repository(db)
    values = {
        "raw_resume_text": payload.text,
        "parsed_resume": parsed.model_dump(),
        "parsed_resume_confirmed_at": None,
    }
    existing = repo.get_profile(user.id)
    if existing is None or not existing.skills:
        values["skills"] = parsed.all_skills()
    if (existing is None or not existing.full_name) and parsed.personal.name:
        values["full_name"] = parsed.personal.name

    profile = repo.upsert_profile(user.id, values)
    logger.info("Parsed resume for user %s (%s skills)", user.id, len(parsed.all_skills()))
    return {"parsed_resume": parsed.model_dump(), "profile": ProfileResponse.model_validate(profile).model_dump(mode="json")}


@router.post("/confirm")
def confirm_resume(
    payload: ResumeConfirmRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> dict:
    repo = Repository(db)
    profile = repo.get_profile(user.id)
    if payload.parsed_resume is None and (profile is None or not profile.parsed_resume):
        raise HTTPException(status_code=400, detail="No parsed resume to confirm")

    parsed = payload.parsed_resume.model_dump() if payload.parsed_resume else None
    profile = repo.confirm_resume(user.id, parsed)
    return {"success": True, "profile": ProfileResponse.model_validate(profile).model_dump(mode="json")}
