"""
Read queries for reservations, joined with client and apartment reference data.

All functions take an open Connection so callers control the transaction.
Rows are returned as plain dicts keyed by storage names.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import Select, or_, select
from sqlalchemy.engine import Connection

from stay_ledger.models.clients import Apartment, Client
from stay_ledger.models.reservations import Reservation

if TYPE_CHECKING:
    from stay_ledger.services.filters import ReservationFilters

LIKE_ESCAPE = "\\"


def _joined_select() -> Select:
    reservations = Reservation.__table__
    clients = Client.__table__
    apartments = Apartment.__table__
    return select(
        *reservations.c,
        clients.c.name.label("client_name"),
        clients.c.lastname.label("client_lastname"),
        clients.c.email.label("client_email"),
        clients.c.phone.label("client_phone"),
        apartments.c.name.label("apartment_name"),
        apartments.c.address.label("apartment_address"),
    ).select_from(
        reservations.outerjoin(clients, reservations.c.client_id == clients.c.id).outerjoin(
            apartments, reservations.c.apartment_id == apartments.c.id
        )
    )


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input only matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _contains(column: Any, value: str) -> Any:
    return column.ilike(f"%{escape_like(value)}%", escape=LIKE_ESCAPE)


def get_reservation_by_id(
    conn: Connection, reservation_id: int, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch one reservation with its joined display fields.

    Args:
        conn (Connection): Active SQLAlchemy connection.
        reservation_id (int): Reservation id.
        for_update (bool): Lock the reservation row until the transaction ends.

    Returns:
        Optional[dict[str, Any]]: Row dict, or None if no such reservation.
    """
    stmt = _joined_select().where(Reservation.__table__.c.id == reservation_id)
    if for_update:
        stmt = stmt.with_for_update(of=Reservation.__table__)
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def reservation_exists(conn: Connection, reservation_id: int) -> bool:
    result = conn.execute(
        select(Reservation.__table__.c.id).where(Reservation.__table__.c.id == reservation_id)
    )
    return result.fetchone() is not None


def build_filter_clauses(filters: "ReservationFilters") -> list[Any]:
    """
    Translate validated filters into WHERE clauses (combined with AND).

    Args:
        filters: Output of ``parse_filters``; assumed valid.

    Returns:
        list: SQLAlchemy boolean clauses
    """
    reservations = Reservation.__table__
    clients = Client.__table__
    clauses: list[Any] = []

    if filters.start_date is not None:
        clauses.append(reservations.c.check_in_date >= filters.start_date)
    if filters.end_date is not None:
        clauses.append(reservations.c.check_out_date <= filters.end_date)
    if filters.status is not None:
        clauses.append(reservations.c.status == filters.status)
    if filters.client_name:
        clauses.append(_contains(clients.c.name, filters.client_name))
    if filters.client_lastname:
        clauses.append(_contains(clients.c.lastname, filters.client_lastname))
    if filters.client_email:
        clauses.append(clients.c.email == filters.client_email)
    if filters.q:
        clauses.append(
            or_(_contains(clients.c.name, filters.q), _contains(clients.c.lastname, filters.q))
        )
    if filters.upcoming:
        reference = filters.from_date
        clauses.append(reservations.c.check_in_date.is_not(None))
        clauses.append(reservations.c.check_in_date >= reference)
        if filters.within_days is not None:
            clauses.append(
                reservations.c.check_in_date < reference + timedelta(days=filters.within_days)
            )
    return clauses


def get_reservations(conn: Connection, filters: "ReservationFilters") -> list[dict[str, Any]]:
    """
    Fetch reservations matching every filter.

    Ordered by check-in date, newest first, reservations without a check-in
    date last, then by id descending.
    """
    reservations = Reservation.__table__
    stmt = _joined_select()
    for clause in build_filter_clauses(filters):
        stmt = stmt.where(clause)
    stmt = stmt.order_by(
        reservations.c.check_in_date.desc().nulls_last(), reservations.c.id.desc()
    )
    return [dict(row) for row in conn.execute(stmt).mappings()]


def get_reservations_for_day(
    conn: Connection, status: str, date_column: str, day: datetime
) -> list[dict[str, Any]]:
    """
    Fetch reservations in ``status`` whose ``date_column`` falls on ``day``.

    Used by the status sweep (check-ins and check-outs due today).
    """
    reservations = Reservation.__table__
    column = reservations.c[date_column]
    start = datetime.combine(day.date(), datetime.min.time())
    stmt = (
        select(reservations)
        .where(reservations.c.status == status)
        .where(column >= start)
        .where(column < start + timedelta(days=1))
        .order_by(reservations.c.id)
    )
    return [dict(row) for row in conn.execute(stmt).mappings()]


def get_reservations_checking_in_between(
    conn: Connection, start: datetime, end: datetime
) -> list[dict[str, Any]]:
    """Joined reservations whose check-in falls in [start, end)."""
    reservations = Reservation.__table__
    stmt = (
        _joined_select()
        .where(reservations.c.check_in_date >= start)
        .where(reservations.c.check_in_date < end)
        .order_by(reservations.c.check_in_date.desc(), reservations.c.id.desc())
    )
    return [dict(row) for row in conn.execute(stmt).mappings()]
