"""
Integration tests for filtered reservation reads.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable
from unittest.mock import patch

import pytest

from stay_ledger.exceptions import ValidationError
from stay_ledger.services.reservations import ReservationService
from stay_ledger.utils.datetime import parse_api_datetime

NOW = datetime(2025, 6, 1, 9, 0)


@pytest.fixture
def guests(make_client: Callable[..., int]) -> dict[str, int]:
    """Three guests with distinct names."""
    return {
        "ana": make_client("Ana", "Lopez", "ana.lopez@example.com"),
        "bruno": make_client("Bruno", "Martinez", "bruno@example.com"),
        "carla": make_client("Carla", "100%_Real", "carla@example.com"),
    }


def _ids(service: ReservationService, raw: dict[str, str]) -> list[int]:
    return [r["id"] for r in service.get_all(raw, now=NOW)]


@pytest.mark.integration
def test_upcoming_within_days_excludes_null_and_out_of_window(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test upcoming + withinDays returns only non-null check-ins inside the window."""
    inside = make_reservation(check_in_date=datetime(2025, 6, 5, 15, 0))
    make_reservation(check_in_date=None)
    make_reservation(check_in_date=datetime(2025, 6, 9, 15, 0))
    make_reservation(check_in_date=datetime(2025, 5, 30, 15, 0))

    assert _ids(service, {"upcoming": "true", "withinDays": "7"}) == [inside]


@pytest.mark.integration
def test_upcoming_compares_offset_check_in_in_utc(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test a check-in sent with an offset is compared to the reference in UTC."""
    # 15:00 at -04:00 is 19:00 UTC
    reservation_id = make_reservation(
        check_in_date=parse_api_datetime("2025-06-10T15:00:00-04:00")
    )

    before = service.get_all({"upcoming": "true"}, now=datetime(2025, 6, 10, 18, 0))
    after = service.get_all({"upcoming": "true"}, now=datetime(2025, 6, 10, 19, 30))

    assert [r["id"] for r in before] == [reservation_id]
    assert after == []


@pytest.mark.integration
def test_upcoming_without_window_is_open_ended(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test upcoming without withinDays returns every future check-in."""
    soon = make_reservation(check_in_date=datetime(2025, 6, 5, 15, 0))
    later = make_reservation(check_in_date=datetime(2025, 12, 20, 15, 0))
    make_reservation(check_in_date=None)

    assert _ids(service, {"upcoming": "true"}) == [later, soon]


@pytest.mark.integration
def test_upcoming_from_explicit_date(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test fromDate moves the reference point of the upcoming window."""
    july = make_reservation(check_in_date=datetime(2025, 7, 3, 15, 0))
    make_reservation(check_in_date=datetime(2025, 6, 5, 15, 0))

    ids = _ids(service, {"upcoming": "true", "fromDate": "07-01-2025", "withinDays": "7"})

    assert ids == [july]


@pytest.mark.integration
def test_from_date_without_upcoming_never_reaches_store(service: ReservationService) -> None:
    """Test the invalid combination is rejected during validation."""
    with patch("stay_ledger.services.reservations.get_reservations") as mock_read:
        with pytest.raises(ValidationError, match="upcoming"):
            service.get_all({"fromDate": "06-01-2025"})

    mock_read.assert_not_called()


@pytest.mark.integration
def test_ordering_latest_check_in_first_nulls_last(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test results are newest check-in first with undated reservations at the end."""
    undated = make_reservation(check_in_date=None)
    early = make_reservation(check_in_date=datetime(2025, 1, 5, 15, 0))
    late = make_reservation(check_in_date=datetime(2025, 8, 5, 15, 0))

    assert _ids(service, {}) == [late, early, undated]


@pytest.mark.integration
def test_date_range_filters(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test startDate bounds check-in and a bare endDate covers the whole check-out day."""
    june = make_reservation(
        check_in_date=datetime(2025, 6, 10, 15, 0), check_out_date=datetime(2025, 6, 13, 11, 0)
    )
    make_reservation(
        check_in_date=datetime(2025, 5, 10, 15, 0), check_out_date=datetime(2025, 5, 13, 11, 0)
    )
    make_reservation(
        check_in_date=datetime(2025, 6, 28, 15, 0), check_out_date=datetime(2025, 7, 2, 11, 0)
    )

    assert _ids(service, {"startDate": "2025-06-01", "endDate": "2025-06-13"}) == [june]


@pytest.mark.integration
def test_status_filter(service: ReservationService, make_reservation: Callable[..., int]) -> None:
    """Test status matches exactly."""
    cancelled = make_reservation(status="cancelled")
    make_reservation(status="confirmed")

    assert _ids(service, {"status": "cancelled"}) == [cancelled]


@pytest.mark.integration
def test_name_filters_are_case_insensitive(
    service: ReservationService, make_reservation: Callable[..., int], guests: dict[str, int]
) -> None:
    """Test clientName and clientLastname match substrings ignoring case."""
    ana = make_reservation(client_id=guests["ana"])
    make_reservation(client_id=guests["bruno"])

    assert _ids(service, {"clientName": "AN"}) == [ana]
    assert _ids(service, {"clientLastname": "lop"}) == [ana]


@pytest.mark.integration
def test_free_text_matches_first_or_last_name(
    service: ReservationService, make_reservation: Callable[..., int], guests: dict[str, int]
) -> None:
    """Test q matches either name column."""
    ana = make_reservation(client_id=guests["ana"], check_in_date=datetime(2025, 6, 1))
    bruno = make_reservation(client_id=guests["bruno"], check_in_date=datetime(2025, 5, 1))

    assert _ids(service, {"q": "mart"}) == [bruno]
    assert _ids(service, {"q": "a"}) == [ana, bruno]


@pytest.mark.integration
def test_like_wildcards_match_literally(
    service: ReservationService, make_reservation: Callable[..., int], guests: dict[str, int]
) -> None:
    """Test % and _ in user input do not act as wildcards."""
    carla = make_reservation(client_id=guests["carla"])
    make_reservation(client_id=guests["ana"])

    assert _ids(service, {"q": "100%_"}) == [carla]
    assert _ids(service, {"q": "%"}) == [carla]


@pytest.mark.integration
def test_client_email_is_exact(
    service: ReservationService, make_reservation: Callable[..., int], guests: dict[str, int]
) -> None:
    """Test clientEmail is an exact match, not a substring."""
    bruno = make_reservation(client_id=guests["bruno"])

    assert _ids(service, {"clientEmail": "bruno@example.com"}) == [bruno]
    assert _ids(service, {"clientEmail": "bruno@"}) == []


@pytest.mark.integration
def test_filters_combine_with_and(
    service: ReservationService, make_reservation: Callable[..., int], guests: dict[str, int]
) -> None:
    """Test every filter must match."""
    match = make_reservation(client_id=guests["ana"], status="confirmed")
    make_reservation(client_id=guests["ana"], status="cancelled")
    make_reservation(client_id=guests["bruno"], status="confirmed")

    assert _ids(service, {"clientName": "ana", "status": "confirmed"}) == [match]
