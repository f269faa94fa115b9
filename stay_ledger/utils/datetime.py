"""Datetime helpers shared by schemas, filters and services."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from typing import Any

from dateutil import parser as date_parser

# Legacy booking dates arrive as "MM-DD-YYYY HH:mm" or a bare "MM-DD-YYYY"
LEGACY_DATETIME_FORMAT = "%m-%d-%Y %H:%M"
LEGACY_DATE_FORMAT = "%m-%d-%Y"

_BARE_DATE = re.compile(r"^\s*\d{1,4}[-/]\d{1,2}[-/]\d{1,4}\s*$")


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    Used for audit timestamps (createdAt, paymentDate) which are stored in UTC.

    Example:
        >>> utc_now().tzinfo
        datetime.timezone.utc
    """
    return datetime.now(timezone.utc)


def utc_now_naive() -> datetime:
    """
    Return the current UTC time without tzinfo.

    Stay dates are stored as naive UTC (see parse_api_datetime), so the
    reference for upcoming windows and the status sweep uses the same clock.
    """
    return utc_now().replace(tzinfo=None)


def is_bare_date(value: Any) -> bool:
    """True when value is a date (or date string) without a time component."""
    if isinstance(value, datetime):
        return False
    if isinstance(value, date):
        return True
    return isinstance(value, str) and bool(_BARE_DATE.match(value))


def parse_api_datetime(value: Any) -> datetime:
    """
    Parse a date or datetime supplied through the API.

    Accepts datetime/date objects, ISO-8601 strings and the legacy
    ``MM-DD-YYYY HH:mm`` / ``MM-DD-YYYY`` strings. Ambiguous numeric dates are
    read month first. The result is always naive.

    Raises:
        ValueError: If the value cannot be read as a date.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date value: {value!r}")

    text = value.strip()
    for fmt in (LEGACY_DATETIME_FORMAT, LEGACY_DATE_FORMAT):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    try:
        parsed = date_parser.parse(text, dayfirst=False)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid date value: {value!r}") from e

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def end_of_day(value: datetime) -> datetime:
    """Move a datetime to the last microsecond of its calendar day."""
    return datetime.combine(value.date(), time.max)


def format_api_datetime(value: datetime | None) -> str | None:
    """Render a stored datetime for API responses (ISO-8601)."""
    if value is None:
        return None
    return value.isoformat()
