"""
Invariant calculator for reservation totals.

    total_amount = nights * price_per_night + cleaning_fee
                   + other_expenses + parking_fee + taxes
    amount_due   = max(0, total_amount - amount_paid)

Every write path that touches money goes through this module. When an input is
not a finite number the calculator returns ``Uncomputable`` instead of a
number, and the caller keeps whatever was stored before.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Union

# Inputs of the total formula, in storage names
FORMULA_FIELDS: tuple[str, ...] = (
    "nights",
    "price_per_night",
    "cleaning_fee",
    "other_expenses",
    "parking_fee",
    "taxes",
)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

PAYMENT_PENDING = "pending"
PAYMENT_PARTIAL = "partial"
PAYMENT_COMPLETE = "complete"


@dataclass(frozen=True)
class Computed:
    total_amount: Decimal
    amount_due: Decimal


@dataclass(frozen=True)
class Uncomputable:
    invalid_fields: tuple[str, ...]


CalculationResult = Union[Computed, Uncomputable]


def to_money(value: Any) -> Optional[Decimal]:
    """
    Coerce a value to a finite Decimal.

    Returns None for None, booleans, non-numeric strings, NaN and infinities.

    Example:
        >>> to_money("12.5")
        Decimal('12.5')
        >>> to_money(float("nan")) is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float, str)):
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not number.is_finite():
        return None
    return number


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def derive_balance(total_amount: Decimal, amount_paid: Decimal) -> Decimal:
    """amount_due for a known total, clamped at zero."""
    return quantize(max(ZERO, total_amount - amount_paid))


def derive_payment_status(amount_due: Decimal, amount_paid: Decimal) -> str:
    if amount_due <= 0:
        return PAYMENT_COMPLETE
    if amount_paid > 0:
        return PAYMENT_PARTIAL
    return PAYMENT_PENDING


def calculate_totals(charges: Mapping[str, Any], amount_paid: Any = 0) -> CalculationResult:
    """
    Compute total_amount and amount_due from charge fields.

    Args:
        charges: Mapping holding every name in FORMULA_FIELDS
        amount_paid: Amount already paid; None counts as nothing paid

    Returns:
        Computed with both amounts quantized to cents, or Uncomputable naming
        the inputs that were not finite numbers.
    """
    values: dict[str, Decimal] = {}
    invalid: list[str] = []

    for field in FORMULA_FIELDS:
        number = to_money(charges.get(field))
        if number is None:
            invalid.append(field)
        else:
            values[field] = number

    paid = ZERO if amount_paid is None else to_money(amount_paid)
    if paid is None:
        invalid.append("amount_paid")

    if invalid:
        return Uncomputable(invalid_fields=tuple(invalid))

    total = (
        values["nights"] * values["price_per_night"]
        + values["cleaning_fee"]
        + values["other_expenses"]
        + values["parking_fee"]
        + values["taxes"]
    )
    total = quantize(total)
    return Computed(total_amount=total, amount_due=derive_balance(total, paid or ZERO))
