"""
Unit tests for date parsing and display formatting helpers.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from stay_ledger.utils.datetime import (
    end_of_day,
    is_bare_date,
    parse_api_datetime,
    utc_now,
    utc_now_naive,
)
from stay_ledger.utils.formatting import format_date, format_money


@pytest.mark.unit
@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("06-10-2025 15:00", datetime(2025, 6, 10, 15, 0)),
        ("06-10-2025", datetime(2025, 6, 10)),
        ("2025-06-10T15:00:00", datetime(2025, 6, 10, 15, 0)),
        ("2025-06-10", datetime(2025, 6, 10)),
        (date(2025, 6, 10), datetime(2025, 6, 10)),
    ],
)
def test_parse_api_datetime_accepts_supported_formats(value: object, expected: datetime) -> None:
    """Test legacy MM-DD-YYYY and ISO-8601 inputs are both read."""
    assert parse_api_datetime(value) == expected


@pytest.mark.unit
def test_parse_api_datetime_normalizes_aware_values_to_utc() -> None:
    """Test offsets are converted to UTC and dropped."""
    aware = datetime(2025, 6, 10, 10, 0, tzinfo=timezone(timedelta(hours=-5)))

    assert parse_api_datetime(aware) == datetime(2025, 6, 10, 15, 0)
    assert parse_api_datetime("2025-06-10T10:00:00-05:00") == datetime(2025, 6, 10, 15, 0)


@pytest.mark.unit
@pytest.mark.parametrize("value", ["", "   ", "yesterday-ish", None, 12])
def test_parse_api_datetime_rejects_garbage(value: object) -> None:
    """Test unreadable values raise ValueError."""
    with pytest.raises(ValueError):
        parse_api_datetime(value)


@pytest.mark.unit
def test_is_bare_date() -> None:
    """Test date-only inputs are told apart from inputs with a time."""
    assert is_bare_date("2025-06-30")
    assert is_bare_date("06-30-2025")
    assert is_bare_date(date(2025, 6, 30))
    assert not is_bare_date("06-30-2025 11:00")
    assert not is_bare_date(datetime(2025, 6, 30))


@pytest.mark.unit
def test_end_of_day() -> None:
    """Test end_of_day keeps the date and moves to its last microsecond."""
    result = end_of_day(datetime(2025, 6, 30, 8, 15))

    assert result == datetime(2025, 6, 30, 23, 59, 59, 999999)


@pytest.mark.unit
def test_utc_now_is_aware() -> None:
    """Test audit timestamps carry UTC tzinfo."""
    assert utc_now().tzinfo == timezone.utc


@pytest.mark.unit
def test_utc_now_naive_reads_the_utc_clock() -> None:
    """Test the reference clock is UTC without tzinfo, like stored stay dates."""
    before = datetime.now(timezone.utc).replace(tzinfo=None)
    value = utc_now_naive()
    after = datetime.now(timezone.utc).replace(tzinfo=None)

    assert value.tzinfo is None
    assert before <= value <= after


@pytest.mark.unit
def test_format_money() -> None:
    """Test amounts render with currency sign, grouping and cents."""
    assert format_money(Decimal("1234.5")) == "$1,234.50"
    assert format_money(0) == "$0.00"
    assert format_money(None) == "-"


@pytest.mark.unit
def test_format_date() -> None:
    """Test datetimes render in the MM-DD-YYYY HH:mm format guests know."""
    assert format_date(datetime(2025, 6, 10, 15, 0)) == "06-10-2025 15:00"
    assert format_date(None) == "-"
