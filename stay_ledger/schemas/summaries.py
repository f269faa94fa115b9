from typing import Optional

from pydantic import EmailStr, Field

from stay_ledger.schemas.reservations import ApiModel


class SummaryGeneratePayload(ApiModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)


class SummarySendPayload(ApiModel):
    """Recipient override; ADMIN_EMAIL is used when omitted."""

    email: Optional[EmailStr] = None
