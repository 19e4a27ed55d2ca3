from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from klevr.config import get_settings
from klevr.core import runtime
from klevr.core.auth import decode_session_token
from klevr.core.job_search import JobSearchClient
from klevr.core.storage import ObjectStorage
from klevr.db.models import User
from klevr.db.repositories import Repository
from klevr.db.session import get_db_session
from klevr.functions.client import EventClient
from klevr.llm.router import LLMRouter


def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def _session_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(get_settings().session_cookie_name)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User | None:
    token = _session_token(request)
    if not token:
        return None

    claims = decode_session_token(token)
    if claims is None:
        return None
    return Repository(db).get_or_create_user(auth0_id=claims.sub, email=claims.email)


def require_user(user: User | None = Depends(get_current_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def get_storage() -> ObjectStorage:
    return runtime.get_storage()


def get_event_client() -> EventClient:
    return runtime.get_event_client()


def get_llm() -> LLMRouter:
    return runtime.get_event_client().llm


def get_job_search() -> JobSearchClient:
    return JobSearchClient()
