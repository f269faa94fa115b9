from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from stay_ledger.dependencies import get_reservation_service
from stay_ledger.exceptions import StayLedgerError
from stay_ledger.mapping import to_api_fields
from stay_ledger.routes._reservation_helpers import (
    internal_error,
    reservation_response,
    serialize_rows,
    to_http_exception,
)
from stay_ledger.schemas.reservations import PaymentCreatePayload
from stay_ledger.services.reservations import ReservationService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/reservations/{reservation_id}/payments", status_code=status.HTTP_201_CREATED)
def register_payment(
    reservation_id: int,
    payload: PaymentCreatePayload,
    notify: bool = Query(False, description="Email the guest a payment receipt"),
    service: ReservationService = Depends(get_reservation_service),
) -> dict[str, Any]:
    """
    Record a payment against a reservation.

    The ledger entry and the reservation's amountPaid, amountDue and
    paymentStatus are written in one transaction.

    Returns:
        dict: The reservation after the payment plus ``sideEffects``
    """
    try:
        result = service.register_payment(
            reservation_id,
            payload.amount,
            payload.payment_method,
            reference=payload.payment_reference,
            notes=payload.notes,
            payment_date=payload.payment_date,
            notify=notify,
        )
        return reservation_response(result)
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(
            e, "register_payment", reservation_id=reservation_id, amount=str(payload.amount)
        ) from e
    except Exception as e:
        raise internal_error("register_payment", e, reservation_id=reservation_id) from e


@router.get("/reservations/{reservation_id}/payments")
def list_payments(
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service),
) -> list[dict[str, Any]]:
    """Payment ledger of a reservation, newest first."""
    try:
        return serialize_rows(service.get_payments(reservation_id))
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "list_payments", reservation_id=reservation_id) from e
    except Exception as e:
        raise internal_error("list_payments", e, reservation_id=reservation_id) from e


@router.get("/payments/{payment_id}")
def get_payment(
    payment_id: int,
    service: ReservationService = Depends(get_reservation_service),
) -> dict[str, Any]:
    try:
        return to_api_fields(service.get_payment(payment_id))
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "get_payment", payment_id=payment_id) from e
    except Exception as e:
        raise internal_error("get_payment", e, payment_id=payment_id) from e
