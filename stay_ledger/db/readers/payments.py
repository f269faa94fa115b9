from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from stay_ledger.models.clients import Client
from stay_ledger.models.reservations import Reservation, ReservationPayment


def get_payments_for_reservation(conn: Connection, reservation_id: int) -> list[dict[str, Any]]:
    """
    Fetch the payment ledger of one reservation, newest first.

    Args:
        conn (Connection): Active SQLAlchemy connection.
        reservation_id (int): Reservation id.

    Returns:
        list[dict[str, Any]]: Ledger entries ordered by payment_date, then id, descending.
    """
    payments = ReservationPayment.__table__
    stmt = (
        select(payments)
        .where(payments.c.reservation_id == reservation_id)
        .order_by(payments.c.payment_date.desc(), payments.c.id.desc())
    )
    return [dict(row) for row in conn.execute(stmt).mappings()]


def get_payment_by_id(conn: Connection, payment_id: int) -> Optional[dict[str, Any]]:
    payments = ReservationPayment.__table__
    row = conn.execute(select(payments).where(payments.c.id == payment_id)).mappings().fetchone()
    return dict(row) if row else None


def get_payments_between(
    conn: Connection, start: datetime, end: datetime, inclusive_end: bool = False
) -> list[dict[str, Any]]:
    """
    Fetch payments dated in [start, end) (or [start, end] with inclusive_end).

    Rows carry the guest's name and the reservation's check-in date for
    reporting.
    """
    payments = ReservationPayment.__table__
    reservations = Reservation.__table__
    clients = Client.__table__
    upper = payments.c.payment_date <= end if inclusive_end else payments.c.payment_date < end
    stmt = (
        select(
            *payments.c,
            reservations.c.check_in_date,
            clients.c.name.label("client_name"),
            clients.c.lastname.label("client_lastname"),
        )
        .select_from(
            payments.join(reservations, payments.c.reservation_id == reservations.c.id).outerjoin(
                clients, reservations.c.client_id == clients.c.id
            )
        )
        .where(payments.c.payment_date >= start)
        .where(upper)
        .order_by(payments.c.payment_date.desc(), payments.c.id.desc())
    )
    return [dict(row) for row in conn.execute(stmt).mappings()]
