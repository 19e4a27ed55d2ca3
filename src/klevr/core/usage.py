from __future__ import annotations

from datetime import UTC, datetime

from klevr.db.repositories import Repository
from klevr.errors import UsageLimitError
from klevr.types import AiTaskType

USAGE_LIMITS: dict[str, int] = {
    "JOB_SCORING": 200,
    "RESUME_GENERATION": 30,
    "COVER_LETTER_GENERATION": 30,
    "COMPANY_RESEARCH": 100,
}

# Company research shares the fit counter.
USAGE_FIELDS: dict[str, str] = {
    "JOB_SCORING": "fit_count",
    "RESUME_GENERATION": "resume_count",
    "COVER_LETTER_GENERATION": "cover_letter_count",
    "COMPANY_RESEARCH": "fit_count",
}


def current_month(now: datetime | None = None) -> str:
    return (now or datetime.now(UTC)).strftime("%Y-%m")


def get_usage_counts(repo: Repository, user_id: str, month: str | None = None) -> dict[str, int]:
    usage = repo.get_usage(user_id, month or current_month())
    if usage is None:
        return {"fit_count": 0, "resume_count": 0, "cover_letter_count": 0}
    return {
        "fit_count": usage.fit_count,
        "resume_count": usage.resume_count,
        "cover_letter_count": usage.cover_letter_count,
    }


def has_remaining_usage(repo: Repository, user_id: str, task_type: AiTaskType) -> bool:
    counts = get_usage_counts(repo, user_id)
    return counts[USAGE_FIELDS[task_type]] < USAGE_LIMITS[task_type]


def ensure_usage_available(repo: Repository, user_id: str, task_type: AiTaskType) -> None:
    if not has_remaining_usage(repo, user_id, task_type):
        label = task_type.replace("_", " ").lower()
        raise UsageLimitError(f"Monthly {label} limit reached")


def increment_usage(repo: Repository, user_id: str, task_type: AiTaskType) -> None:
    repo.increment_usage(user_id, current_month(), USAGE_FIELDS[task_type])


def usage_summary(repo: Repository, user_id: str) -> dict[str, object]:
    month = current_month()
    counts = get_usage_counts(repo, user_id, month)
    items = {}
    for task_type, limit in USAGE_LIMITS.items():
        used = counts[USAGE_FIELDS[task_type]]
        items[task_type] = {
            "used": used,
            "limit": limit,
            "percentage": round(used / limit * 100),
        }
    return {"month": month, "usage": items}
