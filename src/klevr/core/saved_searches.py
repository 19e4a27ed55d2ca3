from __future__ import annotations

import calendar
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from klevr.types import SavedSearchFrequency

DEFAULT_TIMEZONE = "America/New_York"
_DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def parse_schedule_time(schedule_time: str) -> tuple[int, int]:
    parts = schedule_time.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid schedule time format: {schedule_time}. Expected HH:MM")

    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise ValueError(f"Invalid schedule time: {schedule_time}") from exc

    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid schedule time: {schedule_time}")
    return hours, minutes


def _clamped_day(year: int, month: int, day: int) -> int:
    return min(day, calendar.monthrange(year, month)[1])


def calculate_next_run_at(
    frequency: SavedSearchFrequency,
    schedule_time: str,
    *,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
    timezone: str | None = None,
    from_dt: datetime | None = None,
) -> datetime:
    """Next scheduled run strictly after ``from_dt``, as an aware UTC datetime.

    ``schedule_time`` is wall-clock time in ``timezone``. ``day_of_week`` runs
    1 (Monday) to 7 (Sunday); ``day_of_month`` is clamped to short months.
    """
    hours, minutes = parse_schedule_time(schedule_time)
    zone = ZoneInfo(timezone or DEFAULT_TIMEZONE)

    now = from_dt or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    local_now = now.astimezone(zone)

    def at(day: datetime) -> datetime:
        return day.replace(hour=hours, minute=minutes, second=0, microsecond=0)

    if frequency == "DAILY":
        candidate = at(local_now)
        if candidate <= local_now:
            candidate = at(local_now + timedelta(days=1))

    elif frequency == "WEEKLY":
        target = day_of_week or 1
        if not 1 <= target <= 7:
            raise ValueError(f"day_of_week must be between 1 and 7, got {target}")
        offset = (target - local_now.isoweekday()) % 7
        candidate = at(local_now + timedelta(days=offset))
        if candidate <= local_now:
            candidate = at(candidate + timedelta(days=7))

    elif frequency == "MONTHLY":
        target = day_of_month or 1
        if not 1 <= target <= 31:
            raise ValueError(f"day_of_month must be between 1 and 31, got {target}")
        year, month = local_now.year, local_now.month
        candidate = at(local_now.replace(day=_clamped_day(year, month, target)))
        if candidate <= local_now:
            year, month = (year + 1, 1) if month == 12 else (year, month + 1)
            candidate = at(local_now.replace(year=year, month=month, day=_clamped_day(year, month, target)))

    else:
        raise ValueError(f"Unknown frequency: {frequency}")

    # Re-attach the zone so DST offsets follow the new wall-clock date.
    candidate = candidate.replace(tzinfo=None).replace(tzinfo=zone)
    return candidate.astimezone(UTC)


def schedule_description(
    frequency: SavedSearchFrequency,
    schedule_time: str,
    *,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
) -> str:
    hours, minutes = parse_schedule_time(schedule_time)
    time_label = f"{hours:02d}:{minutes:02d}"

    if frequency == "DAILY":
        return f"Daily at {time_label}"
    if frequency == "WEEKLY":
        return f"Weekly on {_DAY_NAMES[(day_of_week or 1) - 1]} at {time_label}"
    if frequency == "MONTHLY":
        day = day_of_month or 1
        if day in (1, 21, 31):
            suffix = "st"
        elif day in (2, 22):
            suffix = "nd"
        elif day in (3, 23):
            suffix = "rd"
        else:
            suffix = "th"
        return f"Monthly on the {day}{suffix} at {time_label}"
    return "Unknown schedule"


def is_due(next_run_at: datetime | None, now: datetime | None = None) -> bool:
    if next_run_at is None:
        return False
    now = now or datetime.now(UTC)
    if next_run_at.tzinfo is None:
        next_run_at = next_run_at.replace(tzinfo=UTC)
    return next_run_at <= now
