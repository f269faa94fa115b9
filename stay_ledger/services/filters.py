"""
Query Filter Engine: validate reservation list parameters before querying.

``parse_filters`` checks the whole parameter set up front, including the
combinations that only make sense together (``fromDate`` and ``withinDays``
need ``upcoming=true``), and produces a ``ReservationFilters`` that the store
turns into one filtered SELECT.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from stay_ledger.exceptions import ValidationError
from stay_ledger.models.reservations import RESERVATION_STATUSES
from stay_ledger.utils.datetime import end_of_day, is_bare_date, parse_api_datetime, utc_now_naive

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


@dataclass(frozen=True)
class ReservationFilters:
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[str] = None
    client_name: Optional[str] = None
    client_lastname: Optional[str] = None
    client_email: Optional[str] = None
    q: Optional[str] = None
    upcoming: bool = False
    from_date: Optional[datetime] = None
    within_days: Optional[int] = None


def _present(raw: Mapping[str, Any], key: str) -> Optional[Any]:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    return value


def _parse_date(name: str, value: Any) -> datetime:
    try:
        return parse_api_datetime(value)
    except ValueError as e:
        raise ValidationError(f"{name} is not a valid date: {value!r}") from e


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValidationError(f"{name} must be true or false, got {value!r}")


def _parse_within_days(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("withinDays must be a non-negative integer")
    try:
        days = int(str(value).strip())
    except ValueError as e:
        raise ValidationError(f"withinDays must be a non-negative integer, got {value!r}") from e
    if days < 0:
        raise ValidationError(f"withinDays must be a non-negative integer, got {value!r}")
    return days


def parse_filters(raw: Mapping[str, Any], now: Optional[datetime] = None) -> ReservationFilters:
    """
    Validate raw list parameters (API names) into ReservationFilters.

    Args:
        raw: Query parameters, e.g. ``{"upcoming": "true", "withinDays": "7"}``.
            Empty strings count as absent.
        now: Reference time for ``upcoming`` when no ``fromDate`` is given.

    Returns:
        ReservationFilters

    Raises:
        ValidationError: Any malformed value or invalid combination. Raised
            before anything touches the store.
    """
    upcoming_raw = _present(raw, "upcoming")
    upcoming = _parse_bool("upcoming", upcoming_raw) if upcoming_raw is not None else False

    from_raw = _present(raw, "fromDate")
    within_raw = _present(raw, "withinDays")
    if from_raw is not None and not upcoming:
        raise ValidationError("fromDate is only allowed together with upcoming=true")
    if within_raw is not None and not upcoming:
        raise ValidationError("withinDays is only allowed together with upcoming=true")

    start_raw = _present(raw, "startDate")
    end_raw = _present(raw, "endDate")
    start_date = _parse_date("startDate", start_raw) if start_raw is not None else None
    end_date = None
    if end_raw is not None:
        end_date = _parse_date("endDate", end_raw)
        if is_bare_date(end_raw):
            end_date = end_of_day(end_date)
    if start_date is not None and end_date is not None and start_date > end_date:
        raise ValidationError("startDate must not be after endDate")

    status = _present(raw, "status")
    if status is not None and status not in RESERVATION_STATUSES:
        raise ValidationError(
            f"status must be one of {', '.join(RESERVATION_STATUSES)}, got {status!r}"
        )

    from_date = None
    within_days = None
    if upcoming:
        if from_raw is not None:
            from_date = _parse_date("fromDate", from_raw)
        else:
            from_date = now or utc_now_naive()
        if within_raw is not None:
            within_days = _parse_within_days(within_raw)

    return ReservationFilters(
        start_date=start_date,
        end_date=end_date,
        status=status,
        client_name=_present(raw, "clientName"),
        client_lastname=_present(raw, "clientLastname"),
        client_email=_present(raw, "clientEmail"),
        q=_present(raw, "q"),
        upcoming=upcoming,
        from_date=from_date,
        within_days=within_days,
    )
