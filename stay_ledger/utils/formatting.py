"""Display formatting for documents and email templates."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from stay_ledger.utils.datetime import LEGACY_DATETIME_FORMAT


def format_money(value: Any) -> str:
    """
    Example:
        >>> format_money(Decimal("1234.5"))
        '$1,234.50'
    """
    if value is None:
        return "-"
    try:
        return f"${Decimal(str(value)):,.2f}"
    except ArithmeticError:
        return str(value)


def format_date(value: Any) -> str:
    """Render a stored datetime as MM-DD-YYYY HH:mm for people to read."""
    if value is None:
        return "-"
    if isinstance(value, datetime):
        return value.strftime(LEGACY_DATETIME_FORMAT)
    return str(value)
