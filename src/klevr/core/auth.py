from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import jwt

from klevr.config import Settings, get_settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


@dataclass(slots=True)
class SessionClaims:
    sub: str
    email: str


def issue_session_token(
    *,
    sub: str,
    email: str,
    settings: Settings | None = None,
    ttl: timedelta | None = None,
) -> str:
    settings = settings or get_settings()
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "email": email,
        "iat": now,
        "exp": now + (ttl or timedelta(minutes=settings.session_ttl_min)),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_session_token(token: str, settings: Settings | None = None) -> SessionClaims | None:
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired session token")
        return None
    except jwt.InvalidTokenError as exc:
        logger.warning("Rejected invalid session token: %s", exc)
        return None

    sub = payload.get("sub")
    if not sub:
        return None
    return SessionClaims(sub=str(sub), email=str(payload.get("email") or ""))


def logout_url(settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    query = urlencode({"client_id": settings.auth0_client_id, "returnTo": settings.app_base_url})
    return f"https://{settings.auth0_domain}/v2/logout?{query}"
