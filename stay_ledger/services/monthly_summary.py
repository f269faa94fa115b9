"""
Monthly revenue summaries and sales-volume reporting.

A monthly summary counts the reservations that check in during the month and
the payments received during the month, and stores the snapshot in
``monthly_summaries`` (one row per month, replaced on regeneration).
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from stay_ledger.config import ADMIN_EMAIL
from stay_ledger.db.engine import transaction
from stay_ledger.db.readers.monthly_summaries import get_monthly_summary
from stay_ledger.db.readers.payments import get_payments_between
from stay_ledger.db.readers.reservations import get_reservations_checking_in_between
from stay_ledger.db.writers.monthly_summaries import upsert_monthly_summary
from stay_ledger.documents.pdf import DocumentRenderer
from stay_ledger.exceptions import NotFoundError, SideEffectError, ValidationError
from stay_ledger.metrics import side_effect_failures
from stay_ledger.notifications.email import Attachment, DeliveryReceipt, EmailService
from stay_ledger.pricing.calculator import ZERO, quantize
from stay_ledger.utils.datetime import end_of_day, is_bare_date, parse_api_datetime

logger = structlog.get_logger(__name__)

GROUP_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
    "year": "%Y",
}


def month_bounds(month: int, year: int) -> tuple[datetime, datetime]:
    """
    Return [start, end) of a calendar month.

    Raises:
        ValidationError: month outside 1-12 or year outside 2000-2100
    """
    if not 1 <= month <= 12:
        raise ValidationError(f"month must be between 1 and 12, got {month}")
    if not 2000 <= year <= 2100:
        raise ValidationError(f"year must be between 2000 and 2100, got {year}")
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def generate_monthly_summary(
    engine: Engine, month: int, year: int, timeout_seconds: Optional[float] = None
) -> dict[str, Any]:
    """
    Compute and store the summary of one month.

    Returns:
        dict: Stored summary row
    """
    start, end = month_bounds(month, year)
    with transaction(engine, timeout_seconds, "generate_monthly_summary") as conn:
        reservations = get_reservations_checking_in_between(conn, start, end)
        payments = get_payments_between(conn, start, end)
        revenue = quantize(sum((Decimal(p["amount"]) for p in payments), ZERO))
        upsert_monthly_summary(
            conn,
            month=month,
            year=year,
            total_reservations=len(reservations),
            total_payments=len(payments),
            total_revenue=revenue,
        )
        summary = get_monthly_summary(conn, month, year)

    logger.info(
        "monthly_summary_generated",
        month=month,
        year=year,
        total_reservations=len(reservations),
        total_payments=len(payments),
        total_revenue=str(revenue),
    )
    return summary  # type: ignore[return-value]


def get_summary_details(
    engine: Engine, month: int, year: int, timeout_seconds: Optional[float] = None
) -> dict[str, Any]:
    """
    Stored summary plus the reservations and payments behind it.

    Raises:
        NotFoundError: The month was never generated
    """
    start, end = month_bounds(month, year)
    with transaction(engine, timeout_seconds, "get_summary_details") as conn:
        summary = get_monthly_summary(conn, month, year)
        if summary is None:
            raise NotFoundError(f"No summary generated for {month:02d}/{year}")
        reservations = get_reservations_checking_in_between(conn, start, end)
        payments = get_payments_between(conn, start, end)
    return {"summary": summary, "reservations": reservations, "payments": payments}


def generate_summary_pdf(
    engine: Engine,
    renderer: DocumentRenderer,
    month: int,
    year: int,
    timeout_seconds: Optional[float] = None,
) -> bytes:
    """Regenerate the month's summary and render it as PDF."""
    generate_monthly_summary(engine, month, year, timeout_seconds)
    details = get_summary_details(engine, month, year, timeout_seconds)
    return renderer.render_monthly_summary(
        details["summary"], details["reservations"], details["payments"]
    )


def send_summary_by_email(
    engine: Engine,
    renderer: DocumentRenderer,
    email_service: EmailService,
    month: int,
    year: int,
    email: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
) -> DeliveryReceipt:
    """
    Email the month's summary PDF.

    Args:
        email: Recipient; defaults to ADMIN_EMAIL

    Raises:
        ValidationError: No recipient given and ADMIN_EMAIL is not configured
        SideEffectError: Rendering or delivery failed
    """
    recipient = email or ADMIN_EMAIL
    if not recipient:
        raise ValidationError("ADMIN_EMAIL is not configured")

    month_bounds(month, year)
    try:
        pdf = generate_summary_pdf(engine, renderer, month, year, timeout_seconds)
        summary = get_summary_details(engine, month, year, timeout_seconds)["summary"]
        return email_service.send(
            recipient,
            "monthly_summary",
            {"summary": summary},
            attachment=Attachment(filename=f"summary-{year}-{month:02d}.pdf", content=pdf),
        )
    except SideEffectError as e:
        side_effect_failures.labels(kind="monthly_summary").inc()
        logger.warning(
            "side_effect_failed",
            kind="monthly_summary",
            month=month,
            year=year,
            error_code=e.error_code,
            error=e.detail,
        )
        raise


def _parse_bound(name: str, value: Any) -> datetime:
    try:
        return parse_api_datetime(value)
    except ValueError as e:
        raise ValidationError(f"{name} is not a valid date: {value!r}") from e


def get_sales_volume(
    engine: Engine,
    date_from: Any,
    date_to: Any,
    group_by: str = "day",
    timeout_seconds: Optional[float] = None,
) -> dict[str, Any]:
    """
    Sum payments between two dates, grouped by day, month or year.

    A bare ``date_to`` covers that whole day.

    Returns:
        dict: ``from``, ``to``, ``group_by``, ``series`` (period, total,
            count per group, oldest first), ``total`` and ``count``
    """
    if group_by not in GROUP_FORMATS:
        raise ValidationError(f"groupBy must be one of {', '.join(GROUP_FORMATS)}")
    if date_from is None or date_to is None:
        raise ValidationError("from and to are required")

    start = _parse_bound("from", date_from)
    end = _parse_bound("to", date_to)
    if is_bare_date(date_to):
        end = end_of_day(end)
    if start > end:
        raise ValidationError("from must not be after to")

    with transaction(engine, timeout_seconds, "get_sales_volume") as conn:
        payments = get_payments_between(conn, start, end, inclusive_end=True)

    fmt = GROUP_FORMATS[group_by]
    groups: "OrderedDict[str, dict[str, Any]]" = OrderedDict()
    for payment in sorted(payments, key=lambda p: (p["payment_date"], p["id"])):
        period = payment["payment_date"].strftime(fmt)
        bucket = groups.setdefault(period, {"period": period, "total": ZERO, "count": 0})
        bucket["total"] += Decimal(payment["amount"])
        bucket["count"] += 1

    series = [{**g, "total": quantize(g["total"])} for g in groups.values()]
    total = quantize(sum((g["total"] for g in series), ZERO))
    return {
        "from": start,
        "to": end,
        "group_by": group_by,
        "series": series,
        "total": total,
        "count": len(payments),
    }
