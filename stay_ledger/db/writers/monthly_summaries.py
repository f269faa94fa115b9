"""
Upsert for monthly summary snapshots.

Uses the dialect's ON CONFLICT DO UPDATE on the (month, year) unique
constraint, so regenerating a month replaces its numbers in place.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection

from stay_ledger.models.monthly_summaries import MonthlySummary
from stay_ledger.utils.datetime import utc_now


def upsert_monthly_summary(
    conn: Connection,
    month: int,
    year: int,
    total_reservations: int,
    total_payments: int,
    total_revenue: Decimal,
) -> None:
    now = utc_now()
    dialect_insert = sqlite.insert if conn.dialect.name == "sqlite" else postgresql.insert

    stmt = dialect_insert(MonthlySummary).values(
        month=month,
        year=year,
        total_reservations=total_reservations,
        total_payments=total_payments,
        total_revenue=total_revenue,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["month", "year"],
        set_={
            "total_reservations": stmt.excluded.total_reservations,
            "total_payments": stmt.excluded.total_payments,
            "total_revenue": stmt.excluded.total_revenue,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    conn.execute(stmt)
