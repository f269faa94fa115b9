"""
Reservation Lifecycle Controller.

Orchestrates reads, reconciled writes, status transitions and payment
registration for reservations, and runs document and email side effects when
the caller asks for them. Side effects run after the write has committed; a
failing side effect is logged and reported, never rolled back into the write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Union

import structlog
from sqlalchemy.engine import Engine

from stay_ledger.config import STORE_TIMEOUT_SECONDS
from stay_ledger.db.engine import transaction
from stay_ledger.db.readers.payments import get_payments_for_reservation
from stay_ledger.db.readers.reservations import (
    get_reservation_by_id,
    get_reservations,
    get_reservations_for_day,
)
from stay_ledger.db.writers import reservations as reservation_writer
from stay_ledger.documents.pdf import DocumentRenderer
from stay_ledger.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    SideEffectError,
    ValidationError,
)
from stay_ledger.mapping import api_name
from stay_ledger.metrics import reservation_writes, side_effect_failures
from stay_ledger.models.reservations import (
    RESERVATION_STATUSES,
    STATUS_CANCELLED,
    STATUS_CHECKED_IN,
    STATUS_CHECKED_OUT,
    STATUS_CONFIRMED,
    STATUS_PENDING,
)
from stay_ledger.notifications.email import Attachment, DeliveryReceipt, EmailService
from stay_ledger.pricing.calculator import (
    PAYMENT_COMPLETE,
    Computed,
    calculate_totals,
    derive_payment_status,
    to_money,
)
from stay_ledger.pricing.reconcile import reconcile
from stay_ledger.services import payments as ledger
from stay_ledger.services.filters import ReservationFilters, parse_filters
from stay_ledger.utils.datetime import utc_now_naive

logger = structlog.get_logger(__name__)

VALID_TRANSITIONS: dict[str, set[str]] = {
    STATUS_PENDING: {STATUS_CONFIRMED, STATUS_CANCELLED},
    STATUS_CONFIRMED: {STATUS_CHECKED_IN, STATUS_CANCELLED},
    STATUS_CHECKED_IN: {STATUS_CHECKED_OUT, STATUS_CANCELLED},
    STATUS_CHECKED_OUT: set(),
    STATUS_CANCELLED: set(),
}

STATUS_MESSAGES: dict[str, str] = {
    STATUS_PENDING: "Your reservation is pending confirmation",
    STATUS_CONFIRMED: "Your reservation has been confirmed",
    STATUS_CHECKED_IN: "Check-in completed. Enjoy your stay!",
    STATUS_CHECKED_OUT: "Check-out completed. Thank you for your visit!",
    STATUS_CANCELLED: "Your reservation has been cancelled",
}

NOTIFICATION_KINDS = ("confirmation", "status_change", "payment_received")

# Fees a new reservation may omit
OPTIONAL_CHARGES = ("cleaning_fee", "cancellation_fee", "other_expenses", "parking_fee", "taxes")

# Automatic daily moves: (from status, to status, date column that must be today)
SWEEP_RULES = (
    (STATUS_CONFIRMED, STATUS_CHECKED_IN, "check_in_date"),
    (STATUS_CHECKED_IN, STATUS_CHECKED_OUT, "check_out_date"),
)


def validate_status(status: Any) -> str:
    if status not in RESERVATION_STATUSES:
        raise ValidationError(
            f"status must be one of {', '.join(RESERVATION_STATUSES)}, got {status!r}"
        )
    return status


def check_transition(current: str, requested: str) -> bool:
    """
    Check a status change against the workflow.

    Returns:
        bool: False when ``requested`` equals ``current`` (nothing to write),
            True for an allowed transition.

    Raises:
        InvalidTransitionError: The workflow does not allow the move.
    """
    validate_status(requested)
    if requested == current:
        return False
    if requested not in VALID_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(current, requested)
    return True


@dataclass
class SideEffectResult:
    kind: str
    ok: bool
    detail: Optional[str] = None
    message_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "ok": self.ok,
            "detail": self.detail,
            "messageId": self.message_id,
        }


@dataclass
class ReservationResult:
    """A committed reservation plus the outcome of any side effects requested."""

    reservation: dict[str, Any]
    side_effects: list[SideEffectResult] = field(default_factory=list)


class ReservationService:
    """
    Request-scoped controller over the reservation ledger.

    Args:
        engine: SQLAlchemy engine (shared pool)
        email_service: Email collaborator used when notifications are requested
        renderer: Document collaborator for invoices
        timeout_seconds: Statement timeout applied to every store transaction
    """

    def __init__(
        self,
        engine: Engine,
        email_service: Optional[EmailService] = None,
        renderer: Optional[DocumentRenderer] = None,
        timeout_seconds: Optional[float] = STORE_TIMEOUT_SECONDS,
    ) -> None:
        self.engine = engine
        self.email_service = email_service
        self.renderer = renderer
        self.timeout_seconds = timeout_seconds

    # ------------------------------------------------------------------ reads

    def list_reservations(
        self, filters: Union[ReservationFilters, Mapping[str, Any], None] = None
    ) -> list[dict[str, Any]]:
        if not isinstance(filters, ReservationFilters):
            filters = parse_filters(filters or {})
        with transaction(self.engine, self.timeout_seconds, "list_reservations") as conn:
            return get_reservations(conn, filters)

    def get_all(
        self, filters: Mapping[str, Any], now: Optional[datetime] = None
    ) -> list[dict[str, Any]]:
        """
        Validate raw filter parameters (API names) and run one filtered read.

        ``now`` is the reference for ``upcoming`` when ``fromDate`` is absent.

        Raises:
            ValidationError: Any parameter is malformed; no query runs
        """
        return self.list_reservations(parse_filters(filters, now=now))

    def get_reservation(self, reservation_id: int) -> dict[str, Any]:
        with transaction(self.engine, self.timeout_seconds, "get_reservation") as conn:
            reservation = get_reservation_by_id(conn, reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    # ----------------------------------------------------------------- writes

    def create_reservation(
        self, data: Mapping[str, Any], notify: bool = False
    ) -> ReservationResult:
        """
        Create a reservation with computed totals.

        Args:
            data: Reservation fields (storage names). Derived fields and
                status are ignored; a new reservation always starts pending.
            notify: Send the confirmation email after the write commits

        Raises:
            ValidationError: Charge inputs are missing or not numeric
        """
        values = {
            k: v
            for k, v in data.items()
            if k not in ("total_amount", "amount_due", "payment_status", "status")
        }
        for charge in OPTIONAL_CHARGES:
            if values.get(charge) is None:
                values[charge] = Decimal("0")
        if values.get("amount_paid") is None:
            values["amount_paid"] = Decimal("0")

        result = calculate_totals(values, values["amount_paid"])
        if not isinstance(result, Computed):
            raise ValidationError(
                "Cannot compute totals, invalid or missing: "
                + ", ".join(api_name(f) for f in result.invalid_fields)
            )
        paid = to_money(values["amount_paid"])
        values.update(
            status=STATUS_PENDING,
            amount_paid=paid,
            total_amount=result.total_amount,
            amount_due=result.amount_due,
            payment_status=derive_payment_status(result.amount_due, paid),
        )

        try:
            with transaction(self.engine, self.timeout_seconds, "create_reservation") as conn:
                reservation_id = reservation_writer.insert_reservation(conn, values)
                reservation = get_reservation_by_id(conn, reservation_id)
        except Exception:
            reservation_writes.labels(operation="create", status="failure").inc()
            raise

        reservation_writes.labels(operation="create", status="success").inc()
        logger.info(
            "reservation_created",
            reservation_id=reservation_id,
            total_amount=str(result.total_amount),
        )

        side_effects = []
        if notify:
            side_effects.append(self._notify(reservation, "confirmation"))
        return ReservationResult(reservation=reservation, side_effects=side_effects)

    def update_reservation(
        self,
        reservation_id: int,
        update: Mapping[str, Any],
        notify: bool = False,
        version: Optional[int] = None,
    ) -> ReservationResult:
        """
        Apply a partial update, keeping totals and balance consistent.

        An update that only carries ``status`` takes the lightweight status
        path and never touches the money fields.

        Args:
            reservation_id: Reservation to update
            update: Changed fields (storage names)
            notify: Send a status-change email if the status changed
            version: Version the caller last read; mismatch raises ConflictError

        Raises:
            NotFoundError, ConflictError, ValidationError (including
            MissingFieldsError and InvalidTransitionError)
        """
        update = dict(update)
        if set(update) == {"status"}:
            return self.update_status(reservation_id, update["status"], version, notify)

        try:
            with transaction(self.engine, self.timeout_seconds, "update_reservation") as conn:
                current = self._lock(conn, reservation_id, version)
                previous_status = current["status"]

                if "status" in update and not check_transition(previous_status, update["status"]):
                    update.pop("status")

                payload = reconcile(current, update)
                if not payload:
                    return ReservationResult(reservation=current)

                self._write(conn, current, payload)
                reservation = get_reservation_by_id(conn, reservation_id)
        except Exception:
            reservation_writes.labels(operation="update", status="failure").inc()
            raise

        reservation_writes.labels(operation="update", status="success").inc()
        logger.info(
            "reservation_updated",
            reservation_id=reservation_id,
            fields=sorted(payload),
            version=reservation["version"],
        )

        side_effects = []
        if notify and reservation["status"] != previous_status:
            side_effects.append(
                self._notify(reservation, "status_change", previous_status=previous_status)
            )
        return ReservationResult(reservation=reservation, side_effects=side_effects)

    def update_status(
        self,
        reservation_id: int,
        status: str,
        version: Optional[int] = None,
        notify: bool = False,
    ) -> ReservationResult:
        """Status-only write. Setting the current status again is a no-op."""
        validate_status(status)
        try:
            with transaction(self.engine, self.timeout_seconds, "update_status") as conn:
                current = self._lock(conn, reservation_id, version)
                previous_status = current["status"]
                if not check_transition(previous_status, status):
                    return ReservationResult(reservation=current)

                self._write(conn, current, {"status": status})
                reservation = get_reservation_by_id(conn, reservation_id)
        except Exception:
            reservation_writes.labels(operation="update_status", status="failure").inc()
            raise

        reservation_writes.labels(operation="update_status", status="success").inc()
        logger.info(
            "reservation_status_changed",
            reservation_id=reservation_id,
            previous_status=previous_status,
            status=status,
        )

        side_effects = []
        if notify:
            side_effects.append(
                self._notify(reservation, "status_change", previous_status=previous_status)
            )
        return ReservationResult(reservation=reservation, side_effects=side_effects)

    def update_amount_paid(
        self, reservation_id: int, amount_paid: Any, version: Optional[int] = None
    ) -> ReservationResult:
        """
        Override amount_paid directly (administrative correction).

        The balance and payment status are re-derived; the payment ledger is
        left alone.
        """
        value = to_money(amount_paid)
        if value is None or value < 0:
            raise ValidationError("amountPaid must be a non-negative number")
        try:
            with transaction(self.engine, self.timeout_seconds, "update_amount_paid") as conn:
                current = self._lock(conn, reservation_id, version)
                payload = reconcile(current, {"amount_paid": value})
                self._write(conn, current, payload)
                reservation = get_reservation_by_id(conn, reservation_id)
        except Exception:
            reservation_writes.labels(operation="update_amount_paid", status="failure").inc()
            raise

        reservation_writes.labels(operation="update_amount_paid", status="success").inc()
        logger.info(
            "reservation_amount_paid_overridden",
            reservation_id=reservation_id,
            amount_paid=str(value),
            payment_status=reservation["payment_status"],
        )
        return ReservationResult(reservation=reservation)

    def delete_reservation(self, reservation_id: int) -> None:
        with transaction(self.engine, self.timeout_seconds, "delete_reservation") as conn:
            deleted = reservation_writer.delete_reservation(conn, reservation_id)
        if not deleted:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        reservation_writes.labels(operation="delete", status="success").inc()
        logger.info("reservation_deleted", reservation_id=reservation_id)

    def register_payment(
        self,
        reservation_id: int,
        amount: Any,
        method: Optional[str],
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        payment_date: Optional[datetime] = None,
        notify: bool = False,
    ) -> ReservationResult:
        reservation = ledger.register_payment(
            self.engine,
            reservation_id,
            amount,
            method,
            reference=reference,
            notes=notes,
            payment_date=payment_date,
            timeout_seconds=self.timeout_seconds,
        )
        side_effects = []
        if notify:
            side_effects.append(
                self._notify(reservation, "payment_received", amount=to_money(amount))
            )
        return ReservationResult(reservation=reservation, side_effects=side_effects)

    def get_payments(self, reservation_id: int) -> list[dict[str, Any]]:
        return ledger.get_payments_by_reservation(
            self.engine, reservation_id, self.timeout_seconds
        )

    def get_payment(self, payment_id: int) -> dict[str, Any]:
        return ledger.get_payment(self.engine, payment_id, self.timeout_seconds)

    # ----------------------------------------------------------- side effects

    def render_invoice(self, reservation_id: int) -> bytes:
        """Render the invoice PDF of a reservation and its payment ledger."""
        with transaction(self.engine, self.timeout_seconds, "render_invoice") as conn:
            reservation = get_reservation_by_id(conn, reservation_id)
            if reservation is None:
                raise NotFoundError(f"Reservation {reservation_id} not found")
            payments = get_payments_for_reservation(conn, reservation_id)
        return self._renderer().render_invoice(reservation, payments)

    def send_invoice(self, reservation_id: int) -> DeliveryReceipt:
        """
        Email the invoice PDF to the guest.

        Raises:
            SideEffectError: Rendering or delivery failed
        """
        reservation = self.get_reservation(reservation_id)
        try:
            pdf = self.render_invoice(reservation_id)
            return self._email().send(
                reservation.get("client_email"),
                "invoice",
                {"reservation": reservation},
                attachment=Attachment(filename=f"reservation-{reservation_id}.pdf", content=pdf),
            )
        except SideEffectError as e:
            self._record_side_effect_failure("invoice", reservation_id, e)
            raise

    def send_notification(
        self, reservation_id: int, kind: str, previous_status: Optional[str] = None
    ) -> DeliveryReceipt:
        """
        Send one notification email on demand.

        Args:
            reservation_id: Reservation the email is about
            kind: confirmation, status_change or payment_received
            previous_status: Shown in status_change emails

        Raises:
            ValidationError: Unknown kind
            SideEffectError: Delivery failed
        """
        if kind not in NOTIFICATION_KINDS:
            raise ValidationError(
                f"kind must be one of {', '.join(NOTIFICATION_KINDS)}, got {kind!r}"
            )
        reservation = self.get_reservation(reservation_id)
        amount = None
        if kind == "payment_received":
            payments = self.get_payments(reservation_id)
            amount = payments[0]["amount"] if payments else None
        payload = self._notification_payload(reservation, previous_status, amount)
        try:
            return self._email().send(reservation.get("client_email"), kind, payload)
        except SideEffectError as e:
            self._record_side_effect_failure(kind, reservation_id, e)
            raise

    def _notification_payload(
        self,
        reservation: Mapping[str, Any],
        previous_status: Optional[str] = None,
        amount: Optional[Decimal] = None,
    ) -> dict[str, Any]:
        return {
            "reservation": reservation,
            "previous_status": previous_status,
            "status_message": STATUS_MESSAGES.get(reservation.get("status"), ""),
            "amount": amount,
            "is_full_payment": reservation.get("payment_status") == PAYMENT_COMPLETE,
        }

    def _notify(
        self,
        reservation: Mapping[str, Any],
        kind: str,
        previous_status: Optional[str] = None,
        amount: Optional[Decimal] = None,
    ) -> SideEffectResult:
        payload = self._notification_payload(reservation, previous_status, amount)
        return self._run_side_effect(
            kind,
            reservation["id"],
            lambda: self._email().send(reservation.get("client_email"), kind, payload),
        )

    def _run_side_effect(
        self, kind: str, reservation_id: int, action: Callable[[], DeliveryReceipt]
    ) -> SideEffectResult:
        try:
            receipt = action()
        except SideEffectError as e:
            self._record_side_effect_failure(kind, reservation_id, e)
            return SideEffectResult(kind=kind, ok=False, detail=e.detail)
        return SideEffectResult(kind=kind, ok=True, message_id=receipt.message_id)

    def _record_side_effect_failure(
        self, kind: str, reservation_id: int, error: SideEffectError
    ) -> None:
        side_effect_failures.labels(kind=kind).inc()
        logger.warning(
            "side_effect_failed",
            kind=kind,
            reservation_id=reservation_id,
            error_code=error.error_code,
            error=error.detail,
        )

    def _email(self) -> EmailService:
        if self.email_service is None:
            raise SideEffectError("Email delivery is not configured")
        return self.email_service

    def _renderer(self) -> DocumentRenderer:
        if self.renderer is None:
            raise SideEffectError("Document rendering is not configured")
        return self.renderer

    # ------------------------------------------------------------ status sweep

    def advance_statuses(self, today: Optional[datetime] = None) -> dict[str, Any]:
        """
        Move reservations whose check-in or check-out is today.

        ``confirmed`` becomes ``checked_in`` on the check-in day and
        ``checked_in`` becomes ``checked_out`` on the check-out day. Runs only
        when called (HTTP endpoint or script). A reservation changed
        concurrently is skipped and picked up by the next run.

        Returns:
            dict: ``{"updated": <count>, "message": <summary>}``
        """
        day = today or utc_now_naive()
        updated = 0
        skipped = 0

        with transaction(self.engine, self.timeout_seconds, "status_sweep") as conn:
            for from_status, to_status, date_column in SWEEP_RULES:
                for row in get_reservations_for_day(conn, from_status, date_column, day):
                    if reservation_writer.update_reservation(
                        conn, row["id"], {"status": to_status}, row["version"]
                    ):
                        updated += 1
                        logger.info(
                            "reservation_status_advanced",
                            reservation_id=row["id"],
                            previous_status=from_status,
                            status=to_status,
                        )
                    else:
                        skipped += 1

        reservation_writes.labels(operation="status_sweep", status="success").inc(updated)
        logger.info(
            "status_sweep_completed",
            updated=updated,
            skipped=skipped,
            day=day.date().isoformat(),
        )
        return {
            "updated": updated,
            "message": f"{updated} reservation(s) updated for {day.date().isoformat()}",
        }

    # ---------------------------------------------------------------- helpers

    def _lock(self, conn: Any, reservation_id: int, version: Optional[int]) -> dict[str, Any]:
        current = get_reservation_by_id(conn, reservation_id, for_update=True)
        if current is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        if version is not None and version != current["version"]:
            raise ConflictError(
                f"Reservation {reservation_id} is at version {current['version']}, "
                f"update was based on version {version}"
            )
        return current

    def _write(self, conn: Any, current: Mapping[str, Any], payload: Mapping[str, Any]) -> None:
        if not reservation_writer.update_reservation(
            conn, current["id"], dict(payload), current["version"]
        ):
            raise ConflictError(f"Reservation {current['id']} was modified concurrently")
