"""
Document-generation collaborator: invoices and monthly summaries as PDF bytes.

Rendering uses PyMuPDF (``fitz``) and never touches the filesystem; callers
decide whether to stream the bytes or attach them to an email.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

import fitz  # PyMuPDF
import structlog

from stay_ledger.config import BUSINESS_NAME
from stay_ledger.exceptions import DocumentRenderError
from stay_ledger.utils.formatting import format_date, format_money

logger = structlog.get_logger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = fitz.paper_size("letter")
MARGIN = 54
LINE_HEIGHT = 16


def _guest_name(row: Mapping[str, Any]) -> str:
    return " ".join(p for p in (row.get("client_name"), row.get("client_lastname")) if p)


class _PageWriter:
    """Top-to-bottom text layout that starts a new page when one fills up."""

    def __init__(self, doc: "fitz.Document") -> None:
        self.doc = doc
        self.page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        self.y = MARGIN

    def _ensure_room(self, height: float) -> None:
        if self.y + height > PAGE_HEIGHT - MARGIN:
            self.page = self.doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
            self.y = MARGIN

    def line(self, text: str, fontsize: float = 11, indent: float = 0) -> None:
        self._ensure_room(LINE_HEIGHT)
        self.page.insert_text((MARGIN + indent, self.y + fontsize), text, fontsize=fontsize)
        self.y += max(LINE_HEIGHT, fontsize + 6)

    def title(self, text: str) -> None:
        self.line(text, fontsize=18)

    def gap(self) -> None:
        self.y += LINE_HEIGHT / 2


class DocumentRenderer:
    """
    Render business documents as PDF.

    Example:
        >>> renderer = DocumentRenderer()
        >>> pdf_bytes = renderer.render_invoice(reservation, payments)
        >>> pdf_bytes[:4]
        b'%PDF'
    """

    def __init__(self, business_name: str = BUSINESS_NAME) -> None:
        self.business_name = business_name

    def _render(self, kind: str, draw: Any) -> bytes:
        try:
            doc = fitz.open()
            try:
                draw(_PageWriter(doc))
                return doc.tobytes(garbage=3, deflate=True)
            finally:
                doc.close()
        except Exception as e:
            logger.error("document_render_failed", document=kind, error=str(e))
            raise DocumentRenderError(f"Failed to render {kind} document") from e

    def render_invoice(
        self,
        reservation: Mapping[str, Any],
        payments: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> bytes:
        """
        Render the invoice / receipt of one reservation.

        Args:
            reservation: Reservation row (storage names, joined display fields)
            payments: Optional ledger entries to list under the totals

        Returns:
            bytes: PDF document
        """

        def draw(w: _PageWriter) -> None:
            w.title(self.business_name)
            w.line(f"Reservation Receipt #{reservation.get('id')}", fontsize=14)
            w.gap()
            guest = _guest_name(reservation)
            w.line(f"Guest: {guest or '-'}")
            w.line(f"Email: {reservation.get('client_email') or '-'}")
            w.line(f"Phone: {reservation.get('client_phone') or '-'}")
            if reservation.get("apartment_name"):
                w.line(f"Property: {reservation['apartment_name']}")
            w.gap()
            w.line(f"Check-in: {format_date(reservation.get('check_in_date'))}")
            w.line(f"Check-out: {format_date(reservation.get('check_out_date'))}")
            w.line(f"Nights: {reservation.get('nights') or '-'}")
            w.gap()
            w.line(f"Price per night: {format_money(reservation.get('price_per_night'))}")
            w.line(f"Cleaning fee: {format_money(reservation.get('cleaning_fee'))}")
            w.line(f"Other expenses: {format_money(reservation.get('other_expenses'))}")
            w.line(f"Parking fee: {format_money(reservation.get('parking_fee'))}")
            w.line(f"Taxes: {format_money(reservation.get('taxes'))}")
            w.line(f"Total: {format_money(reservation.get('total_amount'))}", fontsize=13)
            w.gap()
            w.line(f"Paid: {format_money(reservation.get('amount_paid'))}")
            w.line(f"Balance due: {format_money(reservation.get('amount_due'))}")
            w.line(f"Status: {reservation.get('status')}")
            w.line(f"Payment status: {reservation.get('payment_status')}")
            if payments:
                w.gap()
                w.line("Payments", fontsize=13)
                for payment in payments:
                    text = (
                        f"{format_date(payment.get('payment_date'))}  "
                        f"{format_money(payment.get('amount'))}  "
                        f"{payment.get('payment_method')}"
                    )
                    if payment.get("payment_reference"):
                        text += f"  ref {payment['payment_reference']}"
                    w.line(text, indent=12)

        return self._render("invoice", draw)

    def render_monthly_summary(
        self,
        summary: Mapping[str, Any],
        reservations: Sequence[Mapping[str, Any]],
        payments: Sequence[Mapping[str, Any]],
    ) -> bytes:
        def draw(w: _PageWriter) -> None:
            w.title(self.business_name)
            w.line(f"Monthly Summary {summary['month']:02d}/{summary['year']}", fontsize=14)
            w.gap()
            w.line(f"Reservations: {summary.get('total_reservations', 0)}")
            w.line(f"Payments: {summary.get('total_payments', 0)}")
            w.line(f"Revenue: {format_money(summary.get('total_revenue'))}", fontsize=13)

            w.gap()
            w.line("Reservations", fontsize=13)
            if not reservations:
                w.line("No reservations this month", indent=12)
            for r in reservations:
                guest = _guest_name(r)
                w.line(
                    f"#{r.get('id')}  {format_date(r.get('check_in_date'))}  "
                    f"{guest or '-'}  {format_money(r.get('total_amount'))}  {r.get('status')}",
                    indent=12,
                )

            w.gap()
            w.line("Payments", fontsize=13)
            if not payments:
                w.line("No payments this month", indent=12)
            for p in payments:
                w.line(
                    f"{format_date(p.get('payment_date'))}  "
                    f"reservation #{p.get('reservation_id')}  "
                    f"{format_money(p.get('amount'))}  {p.get('payment_method')}",
                    indent=12,
                )

        return self._render("monthly_summary", draw)
