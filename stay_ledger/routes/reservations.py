from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response

from stay_ledger.dependencies import get_reservation_service
from stay_ledger.exceptions import StayLedgerError
from stay_ledger.mapping import to_api_fields
from stay_ledger.routes._reservation_helpers import (
    internal_error,
    reservation_response,
    serialize_rows,
    to_http_exception,
)
from stay_ledger.schemas.reservations import (
    NotificationPayload,
    PaymentStatusUpdatePayload,
    ReservationCreatePayload,
    ReservationUpdatePayload,
    StatusUpdatePayload,
)
from stay_ledger.services.filters import parse_filters
from stay_ledger.services.reservations import ReservationService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/reservations")
def list_reservations(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    reservation_status: Optional[str] = Query(None, alias="status"),
    client_name: Optional[str] = Query(None, alias="clientName"),
    client_lastname: Optional[str] = Query(None, alias="clientLastname"),
    client_email: Optional[str] = Query(None, alias="clientEmail"),
    q: Optional[str] = Query(None, description="Matches first or last name"),
    upcoming: Optional[str] = Query(None, description="true to list upcoming check-ins"),
    from_date: Optional[str] = Query(None, alias="fromDate"),
    within_days: Optional[str] = Query(None, alias="withinDays"),
    service: ReservationService = Depends(get_reservation_service),
) -> list[dict[str, Any]]:
    """
    List reservations matching the given filters.

    All parameters are validated together before the query runs;
    ``fromDate`` and ``withinDays`` require ``upcoming=true``.

    Returns:
        list: Reservations, latest check-in first, without check-in date last
    """
    raw = {
        "startDate": start_date,
        "endDate": end_date,
        "status": reservation_status,
        "clientName": client_name,
        "clientLastname": client_lastname,
        "clientEmail": client_email,
        "q": q,
        "upcoming": upcoming,
        "fromDate": from_date,
        "withinDays": within_days,
    }
    try:
        filters = parse_filters(raw)
        return serialize_rows(service.list_reservations(filters))
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "list_reservations") from e
    except Exception as e:
        raise internal_error("list_reservations", e) from e


@router.post("/reservations/status-sweep")
def run_status_sweep(
    service: ReservationService = Depends(get_reservation_service),
) -> dict[str, Any]:
    """
    Advance reservations whose check-in or check-out is today.

    Meant to be called once a day by an external scheduler.
    """
    try:
        return service.advance_statuses()
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "status_sweep") from e
    except Exception as e:
        raise internal_error("status_sweep", e) from e


@router.get("/reservations/{reservation_id}")
def get_reservation(
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service),
) -> dict[str, Any]:
    try:
        return to_api_fields(service.get_reservation(reservation_id))
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "get_reservation", reservation_id=reservation_id) from e
    except Exception as e:
        raise internal_error("get_reservation", e, reservation_id=reservation_id) from e


@router.post("/reservations", status_code=status.HTTP_201_CREATED)
def create_reservation(
    payload: ReservationCreatePayload,
    notify: bool = Query(False, description="Send the confirmation email"),
    service: ReservationService = Depends(get_reservation_service),
) -> dict[str, Any]:
    """
    Create a reservation.

    Totals are computed from the charge fields; the reservation starts in
    ``pending``.

    Returns:
        dict: Created reservation plus ``sideEffects``
    """
    try:
        result = service.create_reservation(payload.model_dump(exclude_unset=True), notify=notify)
        return reservation_response(result)
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "create_reservation") from e
    except Exception as e:
        raise internal_error("create_reservation", e) from e


@router.patch("/reservations/{reservation_id}")
def update_reservation(
    reservation_id: int,
    payload: ReservationUpdatePayload,
    notify: bool = Query(False, description="Email the guest if the status changes"),
    service: ReservationService = Depends(get_reservation_service),
) -> dict[str, Any]:
    """
    Partially update a reservation.

    Changing any charge field recalculates totalAmount, amountDue and
    paymentStatus together. Sending only ``status`` skips the money fields.
    """
    update = payload.model_dump(exclude_unset=True)
    version = update.pop("version", None)
    try:
        result = service.update_reservation(reservation_id, update, notify=notify, version=version)
        return reservation_response(result)
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(
            e, "update_reservation", reservation_id=reservation_id, fields=sorted(update)
        ) from e
    except Exception as e:
        raise internal_error("update_reservation", e, reservation_id=reservation_id) from e


@router.patch("/reservations/{reservation_id}/status")
def update_reservation_status(
    reservation_id: int,
    payload: StatusUpdatePayload,
    notify: bool = Query(False, description="Email the guest about the change"),
    service: ReservationService = Depends(get_reservation_service),
) -> dict[str, Any]:
    try:
        result = service.update_status(
            reservation_id, payload.status, version=payload.version, notify=notify
        )
        return reservation_response(result)
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(
            e, "update_reservation_status", reservation_id=reservation_id, status=payload.status
        ) from e
    except Exception as e:
        raise internal_error("update_reservation_status", e, reservation_id=reservation_id) from e


@router.patch("/reservations/{reservation_id}/payment-status")
def update_payment_status(
    reservation_id: int,
    payload: PaymentStatusUpdatePayload,
    service: ReservationService = Depends(get_reservation_service),
) -> dict[str, Any]:
    """Override amountPaid; amountDue and paymentStatus are re-derived."""
    try:
        result = service.update_amount_paid(
            reservation_id, payload.amount_paid, version=payload.version
        )
        return reservation_response(result)
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "update_payment_status", reservation_id=reservation_id) from e
    except Exception as e:
        raise internal_error("update_payment_status", e, reservation_id=reservation_id) from e


@router.delete("/reservations/{reservation_id}")
def delete_reservation(
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service),
) -> dict[str, str]:
    """Permanently delete a reservation and its payment ledger."""
    try:
        service.delete_reservation(reservation_id)
        return {"message": "Reservation deleted successfully"}
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "delete_reservation", reservation_id=reservation_id) from e
    except Exception as e:
        raise internal_error("delete_reservation", e, reservation_id=reservation_id) from e


@router.get("/reservations/{reservation_id}/invoice", response_class=Response)
def download_invoice(
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service),
) -> Response:
    try:
        pdf = service.render_invoice(reservation_id)
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "download_invoice", reservation_id=reservation_id) from e
    except Exception as e:
        raise internal_error("download_invoice", e, reservation_id=reservation_id) from e
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="reservation-{reservation_id}.pdf"'},
    )


@router.post("/reservations/{reservation_id}/invoice")
def send_invoice(
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service),
) -> dict[str, Any]:
    """Render the invoice and email it to the guest. Delivery failure is a 502."""
    try:
        receipt = service.send_invoice(reservation_id)
        return {
            "message": "Invoice sent",
            "to": receipt.to_address,
            "messageId": receipt.message_id,
        }
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(e, "send_invoice", reservation_id=reservation_id) from e
    except Exception as e:
        raise internal_error("send_invoice", e, reservation_id=reservation_id) from e


@router.post("/reservations/{reservation_id}/notify")
def send_notification(
    reservation_id: int,
    payload: NotificationPayload,
    service: ReservationService = Depends(get_reservation_service),
) -> dict[str, Any]:
    try:
        receipt = service.send_notification(
            reservation_id, payload.kind, previous_status=payload.previous_status
        )
        return {
            "message": "Notification sent",
            "kind": payload.kind,
            "to": receipt.to_address,
            "messageId": receipt.message_id,
        }
    except HTTPException:
        raise
    except StayLedgerError as e:
        raise to_http_exception(
            e, "send_notification", reservation_id=reservation_id, kind=payload.kind
        ) from e
    except Exception as e:
        raise internal_error("send_notification", e, reservation_id=reservation_id) from e
