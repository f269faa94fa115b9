from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import delete, insert, update
from sqlalchemy.engine import Connection

from stay_ledger.models.reservations import Reservation
from stay_ledger.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

# Columns a caller may never set directly
PROTECTED_COLUMNS = frozenset({"id", "version", "created_at", "updated_at"})


def _writable(data: dict[str, Any]) -> dict[str, Any]:
    columns = Reservation.__table__.c
    return {k: v for k, v in data.items() if k in columns and k not in PROTECTED_COLUMNS}


def insert_reservation(conn: Connection, data: dict[str, Any]) -> int:
    """
    Insert a reservation and return its store-assigned id.

    Args:
        conn (Connection): Connection inside an open transaction.
        data (dict): Column values (storage names). Unknown keys are ignored.

    Returns:
        int: New reservation id
    """
    now = utc_now()
    values = _writable(data)
    values.update(version=1, created_at=now, updated_at=now)
    result = conn.execute(insert(Reservation).values(**values))
    reservation_id = result.inserted_primary_key[0]
    logger.debug("reservation_row_inserted", reservation_id=reservation_id)
    return reservation_id


def update_reservation(
    conn: Connection, reservation_id: int, data: dict[str, Any], expected_version: int
) -> bool:
    """
    Apply an update if the row still has the version the caller read.

    The version is bumped on every successful write.

    Args:
        conn (Connection): Connection inside an open transaction.
        reservation_id (int): Reservation id.
        data (dict): Columns to set (storage names).
        expected_version (int): Version read before computing the update.

    Returns:
        bool: False if no row matched (deleted, or changed concurrently).
    """
    values = _writable(data)
    values.update(version=expected_version + 1, updated_at=utc_now())
    stmt = (
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .where(Reservation.version == expected_version)
        .values(**values)
    )
    result = conn.execute(stmt)
    return result.rowcount > 0


def delete_reservation(conn: Connection, reservation_id: int) -> bool:
    """
    Permanently delete a reservation; its payment ledger goes with it.

    Returns:
        bool: False if the reservation did not exist.
    """
    result = conn.execute(delete(Reservation).where(Reservation.id == reservation_id))
    return result.rowcount > 0
