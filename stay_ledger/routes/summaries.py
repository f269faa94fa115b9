"""
Monthly summary and sales-volume endpoints.

Summaries are regenerated explicitly (POST /summaries/generate) and read back
with their reservations and payments, as PDF, or sent to the administrator.
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.engine import Engine

from stay_ledger.dependencies import (
    get_db_engine,
    get_document_renderer,
    get_email_service,
    get_store_timeout,
)
from stay_ledger.documents.pdf import DocumentRenderer
from stay_ledger.exceptions import StayLedgerError
from stay_ledger.mapping import to_api_fields
from stay_ledger.notifications.email import EmailService
from stay_ledger.routes._reservation_helpers import (
    internal_error,
    serialize_rows,
    to_http_exception,
)
from stay_ledger.schemas.summaries import SummaryGeneratePayload, SummarySendPayload
from stay_ledger.services import monthly_summary

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/summaries/generate")
def generate_summary(
    payload: SummaryGeneratePayload,
    engine: Engine = Depends(get_db_engine),
    timeout_seconds: float = Depends(get_store_timeout),
) -> dict[str, Any]:
    """Compute the month's totals and store (or replace) its summary."""
    try:
        summary = monthly_summary.generate_monthly_summary(
            engine, payload.month, payload.year, timeout_seconds
        )
        return to_api_fields(summary)
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(
            e, "generate_summary", month=payload.month, year=payload.year
        ) from e
    except Exception as e:
        raise internal_error("generate_summary", e, month=payload.month, year=payload.year) from e


@router.get("/summaries/sales-volume")
def sales_volume(
    date_from: str = Query(..., alias="from"),
    date_to: str = Query(..., alias="to"),
    group_by: str = Query("day", alias="groupBy", description="day, month or year"),
    engine: Engine = Depends(get_db_engine),
    timeout_seconds: float = Depends(get_store_timeout),
) -> dict[str, Any]:
    """
    Revenue between two dates grouped by day, month or year.

    A bare ``to`` date includes that whole day.
    """
    try:
        volume = monthly_summary.get_sales_volume(
            engine, date_from, date_to, group_by, timeout_seconds
        )
        body = to_api_fields({k: v for k, v in volume.items() if k != "series"})
        body["series"] = serialize_rows(volume["series"])
        return body
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "sales_volume") from e
    except Exception as e:
        raise internal_error("sales_volume", e) from e


@router.get("/summaries/{year}/{month}")
def get_summary(
    year: int,
    month: int,
    engine: Engine = Depends(get_db_engine),
    timeout_seconds: float = Depends(get_store_timeout),
) -> dict[str, Any]:
    try:
        details = monthly_summary.get_summary_details(engine, month, year, timeout_seconds)
        return {
            "summary": to_api_fields(details["summary"]),
            "reservations": serialize_rows(details["reservations"]),
            "payments": serialize_rows(details["payments"]),
        }
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "get_summary", month=month, year=year) from e
    except Exception as e:
        raise internal_error("get_summary", e, month=month, year=year) from e


@router.get("/summaries/{year}/{month}/pdf", response_class=Response)
def download_summary_pdf(
    year: int,
    month: int,
    engine: Engine = Depends(get_db_engine),
    timeout_seconds: float = Depends(get_store_timeout),
    renderer: DocumentRenderer = Depends(get_document_renderer),
) -> Response:
    try:
        pdf = monthly_summary.generate_summary_pdf(engine, renderer, month, year, timeout_seconds)
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "download_summary_pdf", month=month, year=year) from e
    except Exception as e:
        raise internal_error("download_summary_pdf", e, month=month, year=year) from e
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="summary-{year}-{month:02d}.pdf"'},
    )


@router.post("/summaries/{year}/{month}/send")
def send_summary(
    year: int,
    month: int,
    payload: Optional[SummarySendPayload] = None,
    engine: Engine = Depends(get_db_engine),
    timeout_seconds: float = Depends(get_store_timeout),
    renderer: DocumentRenderer = Depends(get_document_renderer),
    email_service: EmailService = Depends(get_email_service),
) -> dict[str, Any]:
    """Email the month's summary PDF (to ADMIN_EMAIL unless a recipient is given)."""
    recipient = payload.email if payload else None
    try:
        receipt = monthly_summary.send_summary_by_email(
            engine,
            renderer,
            email_service,
            month,
            year,
            email=recipient,
            timeout_seconds=timeout_seconds,
        )
        return {
            "message": "Summary sent",
            "to": receipt.to_address,
            "messageId": receipt.message_id,
        }
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "send_summary", month=month, year=year) from e
    except Exception as e:
        raise internal_error("send_summary", e, month=month, year=year) from e
