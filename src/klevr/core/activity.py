from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from klevr.db.repositories import Repository
from klevr.types import ActivityType

logger = logging.getLogger(__name__)


def log_activity(
    repo: Repository,
    *,
    user_id: str,
    application_id: str | None,
    type: ActivityType,
    metadata: dict[str, Any] | None = None,
) -> bool:
    """Append a timeline entry. Failures are logged and reported as False, never raised."""
    try:
        repo.add_activity(user_id=user_id, application_id=application_id, type=type, metadata=metadata)
    except SQLAlchemyError as exc:
        repo.session.rollback()
        logger.error(
            "Failed to log activity type=%s application_id=%s: %s",
            type,
            application_id or "none",
            exc,
        )
        return False
    return True


def log_status_change(
    repo: Repository, *, user_id: str, application_id: str, from_status: str, to_status: str
) -> bool:
    return log_activity(
        repo,
        user_id=user_id,
        application_id=application_id,
        type="STATUS_CHANGED",
        metadata={"from": from_status, "to": to_status},
    )
