"""
Merge a partial reservation update into the stored row.

``reconcile`` takes the current row and the caller's partial update (both in
storage field names) and returns the payload to write. The payload either
leaves the derived money fields alone or sets total_amount, amount_due and
payment_status together, never one without the others.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Optional

import structlog

from stay_ledger.exceptions import MissingFieldsError
from stay_ledger.mapping import api_name
from stay_ledger.metrics import reconciliation_outcomes
from stay_ledger.pricing.calculator import (
    FORMULA_FIELDS,
    ZERO,
    Computed,
    calculate_totals,
    derive_balance,
    derive_payment_status,
    to_money,
)

logger = structlog.get_logger(__name__)

# Never taken from the caller; always derived here
DERIVED_ONLY_FIELDS = ("amount_due", "payment_status")


def touches_money(update: Mapping[str, Any]) -> bool:
    """True when an update needs the reconciler at all."""
    return any(field in update for field in (*FORMULA_FIELDS, "amount_paid", "total_amount"))


def _resolve_formula_inputs(
    current: Mapping[str, Any], update: Mapping[str, Any]
) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    missing: list[str] = []
    for field in FORMULA_FIELDS:
        value = update[field] if field in update else current.get(field)
        if value is None:
            missing.append(field)
        merged[field] = value
    if missing:
        raise MissingFieldsError(api_name(field) for field in missing)
    return merged


def _retain_stored_totals(current: Mapping[str, Any], payload: dict[str, Any]) -> None:
    stored_total = to_money(current.get("total_amount"))
    stored_due = to_money(current.get("amount_due"))
    if stored_total is not None:
        payload["total_amount"] = stored_total
    if stored_due is not None:
        payload["amount_due"] = stored_due


def reconcile(current: Mapping[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
    """
    Build the final update payload for a reservation.

    Args:
        current: Stored reservation row (storage names)
        update: Partial update from the caller (storage names)

    Returns:
        dict: Fields to write

    Raises:
        MissingFieldsError: A charge field changed but another formula input is
            missing from both the update and the stored row.
    """
    payload = {k: v for k, v in update.items() if k not in DERIVED_ONLY_FIELDS}
    dropped = [k for k in DERIVED_ONLY_FIELDS if k in update]
    if dropped:
        logger.info("derived_fields_ignored", fields=dropped, reservation_id=current.get("id"))

    charges_changed = [field for field in FORMULA_FIELDS if field in update]
    paid_changed = "amount_paid" in update
    total_override = "total_amount" in update and not charges_changed

    if not charges_changed and not paid_changed and not total_override:
        reconciliation_outcomes.labels(outcome="passthrough").inc()
        return payload

    amount_paid: Optional[Decimal]
    if paid_changed:
        amount_paid = to_money(update["amount_paid"])
        if amount_paid is None:
            logger.warning(
                "amount_paid_not_numeric",
                reservation_id=current.get("id"),
                value=repr(update["amount_paid"]),
            )
            payload.pop("amount_paid")
            amount_paid = to_money(current.get("amount_paid"))
    else:
        amount_paid = to_money(current.get("amount_paid"))
    effective_paid = amount_paid if amount_paid is not None else ZERO

    total: Optional[Decimal] = None

    if charges_changed:
        payload.pop("total_amount", None)
        merged = _resolve_formula_inputs(current, update)
        result = calculate_totals(merged, effective_paid)
        if isinstance(result, Computed):
            total = result.total_amount
            payload["total_amount"] = result.total_amount
            payload["amount_due"] = result.amount_due
            reconciliation_outcomes.labels(outcome="recalculated").inc()
        else:
            for field in result.invalid_fields:
                if field in charges_changed:
                    payload.pop(field, None)
            _retain_stored_totals(current, payload)
            total = payload.get("total_amount")
            reconciliation_outcomes.labels(outcome="retained").inc()
            logger.warning(
                "totals_uncomputable",
                reservation_id=current.get("id"),
                invalid_fields=[api_name(f) for f in result.invalid_fields],
            )
    elif total_override:
        total = to_money(update["total_amount"])
        if total is None:
            payload.pop("total_amount")
        else:
            payload["total_amount"] = total
            reconciliation_outcomes.labels(outcome="override").inc()
            logger.info(
                "total_amount_overridden",
                reservation_id=current.get("id"),
                total_amount=str(total),
            )

    if total is None:
        total = to_money(current.get("total_amount"))

    if total is not None and ("amount_paid" in payload or "total_amount" in payload):
        payload["amount_due"] = derive_balance(total, effective_paid)

    if "amount_due" in payload:
        payload["payment_status"] = derive_payment_status(payload["amount_due"], effective_paid)

    return payload
