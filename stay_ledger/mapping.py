"""
Field-name mapping between the API (camelCase) and the store (snake_case).

This is the only place where the two spellings meet. Pydantic schemas use
``api_name`` as their alias generator, and rows read from the store are
converted with ``to_api_fields`` before they are returned.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping

from stay_ledger.utils.datetime import format_api_datetime

STORAGE_TO_API: dict[str, str] = {
    # reservations
    "id": "id",
    "apartment_id": "apartmentId",
    "client_id": "clientId",
    "check_in_date": "checkInDate",
    "check_out_date": "checkOutDate",
    "nights": "nights",
    "price_per_night": "pricePerNight",
    "cleaning_fee": "cleaningFee",
    "cancellation_fee": "cancellationFee",
    "other_expenses": "otherExpenses",
    "parking_fee": "parkingFee",
    "taxes": "taxes",
    "total_amount": "totalAmount",
    "amount_paid": "amountPaid",
    "amount_due": "amountDue",
    "status": "status",
    "payment_status": "paymentStatus",
    "notes": "notes",
    "version": "version",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    # joined reference data
    "client_name": "clientName",
    "client_lastname": "clientLastname",
    "client_email": "clientEmail",
    "client_phone": "clientPhone",
    "apartment_name": "apartmentName",
    "apartment_address": "apartmentAddress",
    # payments
    "reservation_id": "reservationId",
    "amount": "amount",
    "payment_date": "paymentDate",
    "payment_method": "paymentMethod",
    "payment_reference": "paymentReference",
    # monthly summaries
    "month": "month",
    "year": "year",
    "total_reservations": "totalReservations",
    "total_payments": "totalPayments",
    "total_revenue": "totalRevenue",
    # filters
    "start_date": "startDate",
    "end_date": "endDate",
    "q": "q",
    "upcoming": "upcoming",
    "from_date": "fromDate",
    "within_days": "withinDays",
    # request-only fields
    "previous_status": "previousStatus",
    "group_by": "groupBy",
}

API_TO_STORAGE: dict[str, str] = {api: storage for storage, api in STORAGE_TO_API.items()}


def api_name(storage_name: str) -> str:
    """API spelling of a storage field; unknown names pass through unchanged."""
    return STORAGE_TO_API.get(storage_name, storage_name)


def storage_name(api_field: str) -> str:
    """Storage spelling of an API field; unknown names pass through unchanged."""
    return API_TO_STORAGE.get(api_field, api_field)


def to_storage_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {storage_name(key): value for key, value in payload.items()}


def _api_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_api_datetime(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def to_api_fields(row: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a store row to an API dict (camelCase keys, JSON-friendly values)."""
    return {api_name(key): _api_value(value) for key, value in row.items()}
