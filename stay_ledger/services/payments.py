"""
Payment Ledger Manager.

Appends payments to a reservation's ledger and keeps the reservation's
amount_paid, amount_due and payment_status in step with it. The ledger insert
and the balance update share one transaction: both commit or neither does.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from stay_ledger.db.engine import transaction
from stay_ledger.db.readers.payments import get_payment_by_id, get_payments_for_reservation
from stay_ledger.db.readers.reservations import get_reservation_by_id, reservation_exists
from stay_ledger.db.writers.payments import insert_payment
from stay_ledger.db.writers.reservations import update_reservation
from stay_ledger.exceptions import ConflictError, NotFoundError, ValidationError
from stay_ledger.metrics import payment_amounts, payments_registered
from stay_ledger.models.reservations import PAYMENT_METHODS
from stay_ledger.pricing.calculator import (
    FORMULA_FIELDS,
    ZERO,
    Computed,
    calculate_totals,
    derive_payment_status,
    quantize,
    to_money,
)
from stay_ledger.pricing.reconcile import reconcile

logger = structlog.get_logger(__name__)


def _validate_amount(amount: Any) -> Decimal:
    value = to_money(amount)
    if value is None or value <= 0:
        raise ValidationError("Payment amount must be a positive number")
    return quantize(value)


def _validate_method(method: Optional[str]) -> str:
    normalized = (method or "").strip().lower()
    if not normalized:
        raise ValidationError("Payment method is required")
    if normalized not in PAYMENT_METHODS:
        raise ValidationError(
            f"Payment method must be one of {', '.join(PAYMENT_METHODS)}, got {method!r}"
        )
    return normalized


def _balance_update(current: dict[str, Any], new_paid: Decimal) -> dict[str, Any]:
    payload = reconcile(current, {"amount_paid": new_paid})
    if "amount_due" in payload:
        return payload

    # No usable stored total: derive one from the charge fields if possible
    result = calculate_totals({f: current.get(f) for f in FORMULA_FIELDS}, new_paid)
    if isinstance(result, Computed):
        payload.update(
            total_amount=result.total_amount,
            amount_due=result.amount_due,
            payment_status=derive_payment_status(result.amount_due, new_paid),
        )
    else:
        logger.warning(
            "payment_balance_not_derivable",
            reservation_id=current["id"],
            invalid_fields=list(result.invalid_fields),
        )
    return payload


def register_payment(
    engine: Engine,
    reservation_id: int,
    amount: Any,
    method: Optional[str],
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    payment_date: Optional[datetime] = None,
    timeout_seconds: Optional[float] = None,
) -> dict[str, Any]:
    """
    Record a payment and update the reservation balance atomically.

    Args:
        engine: SQLAlchemy engine
        reservation_id: Reservation receiving the payment
        amount: Positive amount
        method: Payment method (card, cash, transfer, ...)
        reference: Optional external reference (receipt number, transaction id)
        notes: Optional free text
        payment_date: When the money was received; defaults to now
        timeout_seconds: Statement timeout for the transaction

    Returns:
        dict: The reservation row after the payment

    Raises:
        ValidationError: Non-positive amount or unknown method
        NotFoundError: Reservation does not exist
        ConflictError: Reservation changed concurrently; nothing was written
    """
    value = _validate_amount(amount)
    normalized_method = _validate_method(method)

    with transaction(engine, timeout_seconds, "register_payment") as conn:
        current = get_reservation_by_id(conn, reservation_id, for_update=True)
        if current is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")

        previous_paid = to_money(current.get("amount_paid")) or ZERO
        new_paid = quantize(previous_paid + value)

        payment_id = insert_payment(
            conn,
            {
                "reservation_id": reservation_id,
                "amount": value,
                "payment_method": normalized_method,
                "payment_reference": reference,
                "notes": notes,
                "payment_date": payment_date,
            },
        )

        payload = _balance_update(current, new_paid)
        if not update_reservation(conn, reservation_id, payload, current["version"]):
            raise ConflictError(
                f"Reservation {reservation_id} was modified concurrently; payment not recorded"
            )

        updated = get_reservation_by_id(conn, reservation_id)

    payments_registered.labels(method=normalized_method).inc()
    payment_amounts.observe(float(value))
    logger.info(
        "payment_registered",
        reservation_id=reservation_id,
        payment_id=payment_id,
        amount=str(value),
        amount_paid=str(new_paid),
        payment_status=updated["payment_status"] if updated else None,
    )
    return updated  # type: ignore[return-value]


def get_payments_by_reservation(
    engine: Engine, reservation_id: int, timeout_seconds: Optional[float] = None
) -> list[dict[str, Any]]:
    """Ledger entries of a reservation, newest first."""
    with transaction(engine, timeout_seconds, "get_payments") as conn:
        if not reservation_exists(conn, reservation_id):
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return get_payments_for_reservation(conn, reservation_id)


def get_payment(
    engine: Engine, payment_id: int, timeout_seconds: Optional[float] = None
) -> dict[str, Any]:
    with transaction(engine, timeout_seconds, "get_payment") as conn:
        payment = get_payment_by_id(conn, payment_id)
    if payment is None:
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment
