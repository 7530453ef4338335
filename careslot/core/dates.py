# careslot/core/dates.py
from __future__ import annotations

import re
from datetime import UTC, date, datetime

from careslot.core.errors import ValidationError

# Wall-clock slot boundaries are zero-padded 24h "HH:MM", so string order is time order
HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> str:
    if not isinstance(value, str) or not HHMM_RE.match(value.strip()):
        raise ValidationError("invalid_time")
    return value.strip()


def minutes_of(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def parse_day(value: date | str) -> date:
    """
    Accept a date or a "YYYY-MM-DD" string. Datetimes are reduced to their UTC date.
    """
    if isinstance(value, datetime):
        return to_utc_naive(value).date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationError("invalid_date") from exc


def to_utc_naive(dt: datetime) -> datetime:
    """Naive datetimes are already UTC; aware ones are converted."""
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def utc_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def combine(day: date, hhmm: str) -> datetime:
    return datetime.combine(day, datetime.strptime(hhmm, "%H:%M").time())
