from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from stay_ledger.models.monthly_summaries import MonthlySummary


def get_monthly_summary(conn: Connection, month: int, year: int) -> Optional[dict[str, Any]]:
    """
    Fetch the stored snapshot for a month.

    Returns:
        Optional[dict[str, Any]]: Summary row, or None if it was never generated.
    """
    summaries = MonthlySummary.__table__
    stmt = select(summaries).where(summaries.c.month == month).where(summaries.c.year == year)
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None
