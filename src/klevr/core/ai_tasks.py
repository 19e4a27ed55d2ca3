from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from klevr.db.repositories import Repository

if TYPE_CHECKING:
    from klevr.functions.client import EventClient

logger = logging.getLogger(__name__)

TASK_EVENTS: dict[str, str] = {
    "JOB_SCORING": "job/assess-fit",
    "RESUME_GENERATION": "resume/generate",
    "COVER_LETTER_GENERATION": "cover-letter/generate",
    "COMPANY_RESEARCH": "company/research",
}


def create_ai_task(
    repo: Repository,
    events: EventClient,
    *,
    user_id: str,
    type: str,
    application_id: str | None,
    data: dict[str, Any] | None = None,
) -> str:
    """Insert a PENDING task and hand it to the background function for its type."""
    event_name = TASK_EVENTS.get(type)
    if event_name is None:
        raise ValueError(f"Unknown task type: {type}")

    task = repo.create_ai_task(user_id=user_id, type=type, application_id=application_id, input_data=data)
    logger.info("Created ai task id=%s type=%s application_id=%s", task.id, type, application_id)

    events.send(
        event_name,
        {
            "taskId": task.id,
            "userId": user_id,
            "applicationId": application_id,
            **(data or {}),
        },
    )
    return task.id
