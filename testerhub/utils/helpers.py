"""Shared utility functions used by services and blueprints.

utcnow:          timezone-aware "now" used for every timestamp we write
as_utc:          normalise datetimes read back from SQLite or parsed with an offset
to_iso:          UTC ISO-8601 string for to_dict()
parse_datetime:  query-string timestamps (returns None on empty, raises on bad)
pagination_args: limit/offset from the current request
"""
import logging
from datetime import date, datetime, time, timezone

from flask import request

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Return *value* as an aware UTC datetime.

    SQLite drops tzinfo on ``DateTime(timezone=True)`` columns and binds
    only the wall-clock fields, so naive values read back from it are
    re-tagged as UTC and aware values in other zones are converted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    """ISO-8601 string with an explicit UTC offset, or None."""
    return as_utc(value).isoformat() if value else None


def parse_datetime(value):
    """Parse an ISO date or datetime string to an aware datetime.

    Returns None for empty input. A bare date (YYYY-MM-DD) means midnight UTC.

    Raises:
        ValueError: if the value is not a recognised ISO format.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ValueError(
            f"Invalid datetime {value!r}. Use ISO 8601, e.g. 2026-01-31T12:00:00Z."
        ) from exc


def pagination_args(default_limit: int = 50, max_limit: int = 500) -> tuple[int, int]:
    """Parse limit/offset pagination query parameters from the current request.

    Returns:
        Tuple of (limit, offset).
    """
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return max(limit, 1), offset
