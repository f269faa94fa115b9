"""
Internal helpers shared by the reservation, payment and summary routes.

Translate application errors into HTTP responses and shape service results
into API payloads.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

import structlog
from fastapi import HTTPException, status

from stay_ledger.exceptions import (
    MissingFieldsError,
    PersistenceError,
    SideEffectError,
    StayLedgerError,
    StoreUnavailableError,
)
from stay_ledger.mapping import to_api_fields
from stay_ledger.services.reservations import ReservationResult

logger = structlog.get_logger(__name__)


def to_http_exception(error: StayLedgerError, operation: str, **context: Any) -> HTTPException:
    """
    Map an application error to an HTTPException.

    Store and collaborator failures are logged here with their context and
    answered with a generic message; validation, not-found and conflict
    errors pass their message through.

    Args:
        error: Error raised by a service
        operation: Route operation name for the log line
        **context: Extra log fields (reservation_id, payment_id, ...)
    """
    detail: dict[str, Any] = {"errorCode": error.error_code, "message": error.detail}
    headers = None

    if isinstance(error, MissingFieldsError):
        detail["missingFields"] = error.missing_fields
    elif isinstance(error, StoreUnavailableError):
        logger.error(f"{operation}_store_unavailable", error=error.detail, **context)
        detail["message"] = "Storage is temporarily unavailable, retry later"
        headers = {"Retry-After": "1"}
    elif isinstance(error, PersistenceError):
        logger.error(f"{operation}_persistence_failed", error=error.detail, **context)
        detail["message"] = "Internal server error"
    elif isinstance(error, SideEffectError) and error.status_code >= 500:
        logger.error(f"{operation}_side_effect_failed", error=error.detail, **context)

    if error.status_code < 500:
        logger.info(f"{operation}_rejected", error_code=error.error_code, **context)

    return HTTPException(status_code=error.status_code, detail=detail, headers=headers)


def internal_error(operation: str, error: Exception, **context: Any) -> HTTPException:
    logger.exception(f"{operation}_failed", error=str(error), **context)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )


def serialize_rows(rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [to_api_fields(row) for row in rows]


def reservation_response(result: ReservationResult) -> dict[str, Any]:
    """Reservation fields plus a ``sideEffects`` list (empty when none ran)."""
    body = to_api_fields(result.reservation)
    body["sideEffects"] = [effect.to_dict() for effect in result.side_effects]
    return body
