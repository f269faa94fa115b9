"""
Integration tests for the reservation lifecycle service.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable
from unittest.mock import Mock, patch

import pytest
from prometheus_client import REGISTRY
from sqlalchemy.engine import Engine

from stay_ledger.exceptions import (
    ConflictError,
    DocumentRenderError,
    EmailDeliveryError,
    InvalidTransitionError,
    MissingFieldsError,
    NotFoundError,
    ValidationError,
)
from stay_ledger.services.reservations import ReservationService

CHARGES: dict[str, Any] = {
    "nights": 3,
    "price_per_night": Decimal("100"),
    "cleaning_fee": Decimal("50"),
    "other_expenses": Decimal("0"),
    "parking_fee": Decimal("0"),
    "taxes": Decimal("10"),
}


@pytest.mark.integration
def test_create_computes_totals_and_starts_pending(
    service: ReservationService, make_client: Callable[..., int], make_apartment: Callable[..., int]
) -> None:
    """Test a new reservation gets computed totals, pending status and joined display fields."""
    client_id = make_client()
    apartment_id = make_apartment()

    result = service.create_reservation(
        {
            **CHARGES,
            "client_id": client_id,
            "apartment_id": apartment_id,
            "check_in_date": datetime(2025, 6, 10, 15, 0),
            "status": "checked_out",
            "total_amount": Decimal("1"),
            "amount_due": Decimal("1"),
        }
    )
    reservation = result.reservation

    assert reservation["total_amount"] == Decimal("360.00")
    assert reservation["amount_due"] == Decimal("360.00")
    assert reservation["amount_paid"] == Decimal("0.00")
    assert reservation["payment_status"] == "pending"
    assert reservation["status"] == "pending"
    assert reservation["version"] == 1
    assert reservation["client_name"] == "Ana"
    assert reservation["apartment_address"] == "1200 Collins Ave"
    assert result.side_effects == []


@pytest.mark.integration
def test_create_defaults_optional_fees_to_zero(service: ReservationService) -> None:
    """Test omitted fees count as zero."""
    reservation = service.create_reservation(
        {"nights": 2, "price_per_night": Decimal("80")}
    ).reservation

    assert reservation["cleaning_fee"] == Decimal("0.00")
    assert reservation["total_amount"] == Decimal("160.00")


@pytest.mark.integration
def test_create_with_initial_payment(service: ReservationService) -> None:
    """Test an amount paid up front is reflected in balance and payment status."""
    reservation = service.create_reservation(
        {**CHARGES, "amount_paid": Decimal("100")}
    ).reservation

    assert reservation["amount_due"] == Decimal("260.00")
    assert reservation["payment_status"] == "partial"


@pytest.mark.integration
def test_create_without_price_is_rejected(service: ReservationService) -> None:
    """Test missing formula inputs are a validation error, not a zero total."""
    with pytest.raises(ValidationError, match="pricePerNight"):
        service.create_reservation({"nights": 2})


@pytest.mark.integration
def test_create_sends_confirmation_when_asked(
    service: ReservationService, email_service: Mock, make_client: Callable[..., int]
) -> None:
    """Test notify=True emails the guest after the write and reports the outcome."""
    client_id = make_client()

    result = service.create_reservation({**CHARGES, "client_id": client_id}, notify=True)

    email_service.send.assert_called_once()
    to_address, kind, payload = email_service.send.call_args[0]
    assert to_address == "ana.lopez@example.com"
    assert kind == "confirmation"
    assert payload["reservation"]["id"] == result.reservation["id"]
    assert result.side_effects[0].ok is True


@pytest.mark.integration
def test_failed_notification_does_not_undo_write(
    service: ReservationService, email_service: Mock, make_client: Callable[..., int]
) -> None:
    """Test an email failure is reported while the reservation stays committed."""
    email_service.send.side_effect = EmailDeliveryError("Failed to deliver email")
    client_id = make_client()

    result = service.create_reservation({**CHARGES, "client_id": client_id}, notify=True)

    assert result.side_effects[0].ok is False
    assert result.side_effects[0].detail == "Failed to deliver email"
    assert service.get_reservation(result.reservation["id"])["total_amount"] == Decimal("360.00")


@pytest.mark.integration
def test_status_only_update_leaves_money_untouched(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test {status: checked_in} only changes the status."""
    reservation_id = make_reservation(status="confirmed")
    before = service.get_reservation(reservation_id)

    after = service.update_reservation(reservation_id, {"status": "checked_in"}).reservation

    assert after["status"] == "checked_in"
    for field in (
        "nights",
        "price_per_night",
        "cleaning_fee",
        "taxes",
        "total_amount",
        "amount_paid",
        "amount_due",
        "payment_status",
    ):
        assert after[field] == before[field]
    assert after["version"] == before["version"] + 1


@pytest.mark.integration
def test_status_only_update_works_on_corrupted_row(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test a status change never needs the charge fields."""
    reservation_id = make_reservation(cleaning_fee=None, status="confirmed")

    after = service.update_reservation(reservation_id, {"status": "cancelled"}).reservation

    assert after["status"] == "cancelled"
    assert after["cleaning_fee"] is None


@pytest.mark.integration
def test_charge_update_recalculates(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test a new price recomputes total, balance and payment status."""
    reservation_id = make_reservation(
        amount_paid=Decimal("200.00"), amount_due=Decimal("160.00"), payment_status="partial"
    )

    after = service.update_reservation(
        reservation_id, {"price_per_night": Decimal("120")}
    ).reservation

    assert after["total_amount"] == Decimal("420.00")
    assert after["amount_due"] == Decimal("220.00")
    assert after["payment_status"] == "partial"


@pytest.mark.integration
def test_missing_field_leaves_stored_row_untouched(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test a price change on a row without cleaning fee fails and writes nothing."""
    reservation_id = make_reservation(cleaning_fee=None)
    before = service.get_reservation(reservation_id)

    with pytest.raises(MissingFieldsError) as exc_info:
        service.update_reservation(reservation_id, {"price_per_night": Decimal("120")})

    assert exc_info.value.missing_fields == ["cleaningFee"]
    assert service.get_reservation(reservation_id) == before


@pytest.mark.integration
def test_invalid_transition_is_rejected(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test a checked-out reservation cannot go back to checked-in."""
    reservation_id = make_reservation(status="checked_out")

    with pytest.raises(InvalidTransitionError):
        service.update_status(reservation_id, "checked_in")

    assert service.get_reservation(reservation_id)["status"] == "checked_out"


@pytest.mark.integration
def test_same_status_is_a_noop(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test setting the current status again writes nothing."""
    reservation_id = make_reservation(status="confirmed")

    result = service.update_status(reservation_id, "confirmed")

    assert result.reservation["version"] == 1


@pytest.mark.integration
def test_stale_version_is_a_conflict(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test an update based on an old version is refused."""
    reservation_id = make_reservation()
    service.update_reservation(reservation_id, {"notes": "first"}, version=1)

    with pytest.raises(ConflictError):
        service.update_reservation(reservation_id, {"notes": "second"}, version=1)

    assert service.get_reservation(reservation_id)["notes"] == "first"


@pytest.mark.integration
def test_status_change_notifies_with_previous_status(
    service: ReservationService,
    email_service: Mock,
    make_client: Callable[..., int],
    make_reservation: Callable[..., int],
) -> None:
    """Test a notified status change emails the old and new status."""
    reservation_id = make_reservation(client_id=make_client(), status="pending")

    result = service.update_status(reservation_id, "confirmed", notify=True)

    _, kind, payload = email_service.send.call_args[0]
    assert kind == "status_change"
    assert payload["previous_status"] == "pending"
    assert payload["status_message"] == "Your reservation has been confirmed"
    assert result.side_effects[0].kind == "status_change"


@pytest.mark.integration
def test_update_amount_paid_override(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test an administrative amountPaid correction re-derives the balance."""
    reservation_id = make_reservation()

    after = service.update_amount_paid(reservation_id, Decimal("360")).reservation

    assert after["amount_paid"] == Decimal("360.00")
    assert after["amount_due"] == Decimal("0.00")
    assert after["payment_status"] == "complete"

    with pytest.raises(ValidationError):
        service.update_amount_paid(reservation_id, Decimal("-1"))


@pytest.mark.integration
def test_delete_reservation_removes_ledger(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test deleting a reservation removes it and its payments."""
    reservation_id = make_reservation()
    service.register_payment(reservation_id, 100, "cash")

    service.delete_reservation(reservation_id)

    with pytest.raises(NotFoundError):
        service.get_reservation(reservation_id)
    with pytest.raises(NotFoundError):
        service.get_payments(reservation_id)
    with pytest.raises(NotFoundError):
        service.delete_reservation(reservation_id)


@pytest.mark.integration
def test_payment_notification_reports_amount(
    service: ReservationService,
    email_service: Mock,
    make_client: Callable[..., int],
    make_reservation: Callable[..., int],
) -> None:
    """Test a notified payment sends a payment_received email with the amount."""
    reservation_id = make_reservation(client_id=make_client())

    service.register_payment(reservation_id, Decimal("360"), "card", notify=True)

    _, kind, payload = email_service.send.call_args[0]
    assert kind == "payment_received"
    assert payload["amount"] == Decimal("360")
    assert payload["is_full_payment"] is True


@pytest.mark.integration
def test_send_notification_unknown_kind(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test only the known notification kinds can be sent."""
    reservation_id = make_reservation()

    with pytest.raises(ValidationError, match="kind"):
        service.send_notification(reservation_id, "newsletter")


@pytest.mark.integration
def test_send_notification_propagates_delivery_failure(
    service: ReservationService,
    email_service: Mock,
    make_client: Callable[..., int],
    make_reservation: Callable[..., int],
) -> None:
    """Test an explicit notification request surfaces the delivery error."""
    email_service.send.side_effect = EmailDeliveryError("Failed to deliver email")
    reservation_id = make_reservation(client_id=make_client())

    with pytest.raises(EmailDeliveryError):
        service.send_notification(reservation_id, "confirmation")


@pytest.mark.integration
def test_render_invoice(service: ReservationService, make_reservation: Callable[..., int]) -> None:
    """Test the invoice of a stored reservation renders as PDF."""
    reservation_id = make_reservation()

    assert service.render_invoice(reservation_id)[:4] == b"%PDF"

    with pytest.raises(NotFoundError):
        service.render_invoice(reservation_id + 1)


@pytest.mark.integration
def test_send_invoice_attaches_pdf(
    service: ReservationService,
    email_service: Mock,
    make_client: Callable[..., int],
    make_reservation: Callable[..., int],
) -> None:
    """Test the invoice email carries the PDF attachment."""
    reservation_id = make_reservation(client_id=make_client())

    receipt = service.send_invoice(reservation_id)

    attachment = email_service.send.call_args.kwargs["attachment"]
    assert attachment.filename == f"reservation-{reservation_id}.pdf"
    assert attachment.content[:4] == b"%PDF"
    assert receipt.to_address == "ana.lopez@example.com"


@pytest.mark.integration
def test_send_invoice_render_failure_is_counted(
    service: ReservationService,
    email_service: Mock,
    make_client: Callable[..., int],
    make_reservation: Callable[..., int],
) -> None:
    """Test a PDF failure while sending an invoice is re-raised and counted."""
    reservation_id = make_reservation(client_id=make_client())
    labels = {"kind": "invoice"}
    before = REGISTRY.get_sample_value("stay_ledger_side_effect_failures_total", labels) or 0

    with patch.object(
        service.renderer, "render_invoice", side_effect=DocumentRenderError("Failed to render PDF")
    ):
        with pytest.raises(DocumentRenderError):
            service.send_invoice(reservation_id)

    after = REGISTRY.get_sample_value("stay_ledger_side_effect_failures_total", labels)
    assert after == before + 1
    email_service.send.assert_not_called()


@pytest.mark.integration
def test_advance_statuses(
    service: ReservationService, engine: Engine, make_reservation: Callable[..., int]
) -> None:
    """Test the sweep checks in today's arrivals and checks out today's departures."""
    today = datetime(2025, 6, 10, 8, 0)
    arriving = make_reservation(status="confirmed", check_in_date=datetime(2025, 6, 10, 15, 0))
    departing = make_reservation(
        status="checked_in",
        check_in_date=datetime(2025, 6, 7, 15, 0),
        check_out_date=datetime(2025, 6, 10, 11, 0),
    )
    later = make_reservation(status="confirmed", check_in_date=datetime(2025, 6, 11, 15, 0))
    pending = make_reservation(status="pending", check_in_date=datetime(2025, 6, 10, 15, 0))

    result = service.advance_statuses(today=today)

    assert result["updated"] == 2
    assert "2025-06-10" in result["message"]
    assert service.get_reservation(arriving)["status"] == "checked_in"
    assert service.get_reservation(departing)["status"] == "checked_out"
    assert service.get_reservation(later)["status"] == "confirmed"
    assert service.get_reservation(pending)["status"] == "pending"


@pytest.mark.integration
def test_advance_statuses_defaults_to_utc_day(
    service: ReservationService, make_reservation: Callable[..., int]
) -> None:
    """Test the sweep without a date uses the UTC day that stay dates are stored in."""
    arriving = make_reservation(status="confirmed", check_in_date=datetime(2025, 6, 10, 15, 0))

    with patch(
        "stay_ledger.services.reservations.utc_now_naive",
        return_value=datetime(2025, 6, 10, 1, 0),
    ):
        result = service.advance_statuses()

    assert result["updated"] == 1
    assert service.get_reservation(arriving)["status"] == "checked_in"
