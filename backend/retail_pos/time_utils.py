"""
Datetime helpers.

Everything stored is naive UTC. Offsets on input are converted to UTC and
dropped; naive input is taken to already be UTC.
"""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional

_DATE_ONLY_LENGTH = len("YYYY-MM-DD")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: str) -> Optional[datetime]:
    """'2026-03-01T09:30', '...Z' and '...+02:00' all come back naive UTC; blank -> None."""
    text = value.strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    return as_naive_utc(datetime.fromisoformat(text))


def coerce_bound(value, *, end_of_day: bool) -> Optional[datetime]:
    """
    Inclusive range bound from a datetime, a date or an ISO string.

    Bare dates stretch to the edge of the day: midnight for a lower bound,
    23:59:59.999999 for an upper one. Raises ValueError on unparseable text
    and TypeError on anything else.
    """
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if len(text) != _DATE_ONLY_LENGTH:
            return parse_iso_datetime(text)
        value = date.fromisoformat(text)
    if isinstance(value, datetime):
        return as_naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min)
    raise TypeError(f"Unsupported datetime bound: {value!r}")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with a trailing 'Z', to the second."""
    if dt is None:
        return None
    return as_naive_utc(dt).replace(microsecond=0).isoformat() + "Z"
