"""
FastAPI dependency injection providers.

Routes receive the engine, collaborators and the reservation service through
these providers, so tests can swap any of them with
``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.engine import Engine

from stay_ledger.config import STORE_TIMEOUT_SECONDS
from stay_ledger.documents.pdf import DocumentRenderer
from stay_ledger.notifications.email import EmailService
from stay_ledger.services.reservations import ReservationService

# Upper bound for the per-request X-Store-Timeout override
MAX_STORE_TIMEOUT_SECONDS = 60.0


def get_db_engine(request: Request) -> Engine:
    """
    Provide the engine created on application startup.

    Example:
        >>> @router.get("/reservations/{reservation_id}")
        >>> def get_one(reservation_id: int, engine: Engine = Depends(get_db_engine)):
        ...     ...

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: sqlite_engine
    """
    engine: Optional[Engine] = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database engine is not initialized",
        )
    return engine


def get_store_timeout(
    x_store_timeout: Optional[str] = Header(None, alias="X-Store-Timeout"),
) -> float:
    """
    Statement timeout for this request, in seconds.

    Callers may shorten or extend the configured default with the
    X-Store-Timeout header (0 < value <= 60).
    """
    if x_store_timeout is None:
        return STORE_TIMEOUT_SECONDS
    try:
        value = float(x_store_timeout)
    except ValueError:
        value = -1.0
    if not 0 < value <= MAX_STORE_TIMEOUT_SECONDS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                "X-Store-Timeout must be a number of seconds in "
                f"(0, {MAX_STORE_TIMEOUT_SECONDS:g}]"
            ),
        )
    return value


def get_email_service() -> EmailService:
    return EmailService()


def get_document_renderer() -> DocumentRenderer:
    return DocumentRenderer()


def get_reservation_service(
    engine: Engine = Depends(get_db_engine),
    timeout_seconds: float = Depends(get_store_timeout),
    email_service: EmailService = Depends(get_email_service),
    renderer: DocumentRenderer = Depends(get_document_renderer),
) -> ReservationService:
    """Build the request-scoped reservation service."""
    return ReservationService(
        engine,
        email_service=email_service,
        renderer=renderer,
        timeout_seconds=timeout_seconds,
    )
