"""
Request schemas for reservation and payment routes.

Field names are the storage names; the camelCase API spelling comes from the
shared mapping through the alias generator, so ``model_dump(exclude_unset=True)``
yields exactly the storage fields the caller sent.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stay_ledger.mapping import api_name
from stay_ledger.utils.datetime import parse_api_datetime

ReservationStatus = Literal["pending", "confirmed", "checked_in", "checked_out", "cancelled"]
NotificationKind = Literal["confirmation", "status_change", "payment_received"]

Money = Decimal


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=api_name, populate_by_name=True)


def _parse_optional_datetime(value: Any) -> Optional[datetime]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_api_datetime(value)


class ReservationCreatePayload(ApiModel):
    """
    Schema for creating a reservation.

    Totals, balance, payment status and status are derived by the service;
    any values sent for them are ignored.
    """

    apartment_id: Optional[int] = Field(None, description="Apartment being booked")
    client_id: Optional[int] = Field(None, description="Guest")
    check_in_date: Optional[datetime] = Field(None, description="ISO-8601 or MM-DD-YYYY HH:mm")
    check_out_date: Optional[datetime] = Field(None, description="ISO-8601 or MM-DD-YYYY HH:mm")
    nights: int = Field(..., ge=1)
    price_per_night: Money = Field(..., ge=0)
    cleaning_fee: Optional[Money] = Field(None, ge=0)
    cancellation_fee: Optional[Money] = Field(None, ge=0)
    other_expenses: Optional[Money] = Field(None, ge=0)
    parking_fee: Optional[Money] = Field(None, ge=0)
    taxes: Optional[Money] = Field(None, ge=0, description="Absolute tax amount")
    amount_paid: Optional[Money] = Field(None, ge=0)
    notes: Optional[str] = None

    @field_validator("check_in_date", "check_out_date", mode="before")
    @classmethod
    def parse_stay_dates(cls, value: Any) -> Optional[datetime]:
        return _parse_optional_datetime(value)


class ReservationUpdatePayload(ApiModel):
    """
    Schema for a partial reservation update. Only the fields sent are applied.

    ``total_amount`` without any charge field is an administrative override.
    ``version`` (optional) must match the stored version.
    """

    apartment_id: Optional[int] = None
    client_id: Optional[int] = None
    check_in_date: Optional[datetime] = None
    check_out_date: Optional[datetime] = None
    nights: Optional[int] = Field(None, ge=1)
    price_per_night: Optional[Money] = Field(None, ge=0)
    cleaning_fee: Optional[Money] = Field(None, ge=0)
    cancellation_fee: Optional[Money] = Field(None, ge=0)
    other_expenses: Optional[Money] = Field(None, ge=0)
    parking_fee: Optional[Money] = Field(None, ge=0)
    taxes: Optional[Money] = Field(None, ge=0)
    total_amount: Optional[Money] = Field(None, ge=0)
    amount_paid: Optional[Money] = Field(None, ge=0)
    status: Optional[ReservationStatus] = None
    notes: Optional[str] = None
    version: Optional[int] = Field(None, ge=1)

    @field_validator("check_in_date", "check_out_date", mode="before")
    @classmethod
    def parse_stay_dates(cls, value: Any) -> Optional[datetime]:
        return _parse_optional_datetime(value)


class StatusUpdatePayload(ApiModel):
    status: ReservationStatus
    version: Optional[int] = Field(None, ge=1)


class PaymentStatusUpdatePayload(ApiModel):
    """Direct amountPaid override; balance and paymentStatus are re-derived."""

    amount_paid: Money = Field(..., ge=0)
    version: Optional[int] = Field(None, ge=1)


class PaymentCreatePayload(ApiModel):
    amount: Money = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1, description="card, cash, transfer, ...")
    payment_reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    payment_date: Optional[datetime] = Field(None, description="Defaults to now")

    @field_validator("payment_date", mode="before")
    @classmethod
    def parse_payment_date(cls, value: Any) -> Optional[datetime]:
        return _parse_optional_datetime(value)


class NotificationPayload(ApiModel):
    kind: NotificationKind
    previous_status: Optional[ReservationStatus] = None
