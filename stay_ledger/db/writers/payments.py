from __future__ import annotations

from typing import Any

from sqlalchemy import insert
from sqlalchemy.engine import Connection

from stay_ledger.models.reservations import ReservationPayment
from stay_ledger.utils.datetime import utc_now


def insert_payment(conn: Connection, data: dict[str, Any]) -> int:
    """
    Append one entry to a reservation's payment ledger.

    Must run in the same transaction as the reservation balance update.

    Args:
        conn (Connection): Connection inside an open transaction.
        data (dict): reservation_id, amount, payment_method and optional
            payment_date, payment_reference, notes.

    Returns:
        int: New payment id
    """
    now = utc_now()
    values = {
        "reservation_id": data["reservation_id"],
        "amount": data["amount"],
        "payment_method": data["payment_method"],
        "payment_reference": data.get("payment_reference"),
        "notes": data.get("notes"),
        "payment_date": data.get("payment_date") or now,
        "created_at": now,
    }
    result = conn.execute(insert(ReservationPayment).values(**values))
    return result.inserted_primary_key[0]
