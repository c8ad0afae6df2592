"""Timezone-aware date helpers."""

import math
from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite returns them without tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def deadline_in(days: int, now: datetime | None = None) -> datetime:
    """Deadline a fixed number of calendar days from now."""
    return (now or utc_now()) + timedelta(days=days)


def days_remaining(deadline: datetime | None, now: datetime | None = None) -> int | None:
    """Whole days left before a deadline, rounded up; negative once overdue."""
    if deadline is None:
        return None
    delta = as_utc(deadline) - as_utc(now or utc_now())
    return math.ceil(delta.total_seconds() / 86400)
