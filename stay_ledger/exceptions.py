"""
Exception hierarchy for the reservation engine.

Every error carries the HTTP status it maps to, so the route layer can
translate it without knowing which component raised it.
"""

from __future__ import annotations

from typing import Iterable, Optional


class StayLedgerError(Exception):
    """Base class for all application errors."""

    status_code = 500
    error_code = "INTERNAL_ERROR"
    retryable = False

    def __init__(self, detail: str, error_code: Optional[str] = None) -> None:
        self.detail = detail
        if error_code:
            self.error_code = error_code
        super().__init__(detail)


class ValidationError(StayLedgerError):
    """Malformed or out-of-range input. Nothing was written."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class MissingFieldsError(ValidationError):
    """Totals cannot be recalculated because formula inputs are missing."""

    error_code = "MISSING_FIELDS"

    def __init__(self, missing_fields: Iterable[str]) -> None:
        self.missing_fields = list(missing_fields)
        super().__init__(
            "Missing field(s) for calculation: " + ", ".join(self.missing_fields)
        )


class InvalidTransitionError(ValidationError):
    error_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change reservation status from '{current}' to '{requested}'")


class NotFoundError(StayLedgerError):
    status_code = 404
    error_code = "NOT_FOUND"


class ConflictError(StayLedgerError):
    """The row changed between read and write (stale version)."""

    status_code = 409
    error_code = "VERSION_CONFLICT"


class PersistenceError(StayLedgerError):
    status_code = 500
    error_code = "PERSISTENCE_ERROR"


class StoreUnavailableError(PersistenceError):
    """Store timed out or could not be reached; the transaction was rolled back."""

    status_code = 503
    error_code = "STORE_UNAVAILABLE"
    retryable = True


class SideEffectError(StayLedgerError):
    """A document or email collaborator failed. Committed state is untouched."""

    status_code = 502
    error_code = "SIDE_EFFECT_FAILED"


class EmailDeliveryError(SideEffectError):
    error_code = "EMAIL_DELIVERY_FAILED"


class InvalidRecipientError(SideEffectError):
    status_code = 400
    error_code = "INVALID_RECIPIENT"


class DocumentRenderError(SideEffectError):
    error_code = "DOCUMENT_RENDER_FAILED"
