"""SQLAlchemy model for per-month revenue snapshots."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, UniqueConstraint
from sqlalchemy.sql import func

from stay_ledger.models.base import Base


class MonthlySummary(Base):
    """
    Snapshot of one calendar month, regenerated on demand.

    Reservations are counted by check-in month; payments and revenue by
    payment month. One row per (month, year).
    """

    __tablename__ = "monthly_summaries"
    __table_args__ = (
        UniqueConstraint("month", "year", name="uq_monthly_summaries_month_year"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_monthly_summaries_month"),
        CheckConstraint("year BETWEEN 2000 AND 2100", name="ck_monthly_summaries_year"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    total_reservations = Column(Integer, nullable=False, server_default="0")
    total_payments = Column(Integer, nullable=False, server_default="0")
    total_revenue = Column(Numeric(12, 2), nullable=False, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
