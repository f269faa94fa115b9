"""Create reference, reservation, payment and monthly summary tables

Revision ID: 3b1f0c9a7d21
Revises:
Create Date: 2025-08-04 10:12:31.284517

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3b1f0c9a7d21"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(12, 2)


def _now_column(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _timestamps() -> list[sa.Column]:
    return [_now_column("created_at"), _now_column("updated_at")]


def upgrade() -> None:
    """Upgrade schema."""
    # Reference data, owned elsewhere; created here so the joins resolve
    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("lastname", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        _now_column("created_at"),
        if_not_exists=True,
    )
    op.create_index("ix_clients_email", "clients", ["email"], if_not_exists=True)

    op.create_table(
        "apartments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(512), nullable=True),
        _now_column("created_at"),
        if_not_exists=True,
    )

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("apartment_id", sa.Integer(), sa.ForeignKey("apartments.id"), nullable=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("check_in_date", sa.DateTime(timezone=False), nullable=True),
        sa.Column("check_out_date", sa.DateTime(timezone=False), nullable=True),
        sa.Column("nights", sa.Integer(), nullable=True),
        sa.Column("price_per_night", MONEY, nullable=True),
        sa.Column("cleaning_fee", MONEY, nullable=True, server_default="0"),
        sa.Column("cancellation_fee", MONEY, nullable=True, server_default="0"),
        sa.Column("other_expenses", MONEY, nullable=True, server_default="0"),
        sa.Column("parking_fee", MONEY, nullable=True, server_default="0"),
        sa.Column("taxes", MONEY, nullable=True, server_default="0"),
        sa.Column("total_amount", MONEY, nullable=True),
        sa.Column("amount_paid", MONEY, nullable=False, server_default="0"),
        sa.Column("amount_due", MONEY, nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint("nights >= 1", name="ck_reservations_nights_positive"),
        sa.CheckConstraint("amount_paid >= 0", name="ck_reservations_amount_paid_non_negative"),
    )
    op.create_index("ix_reservations_apartment_id", "reservations", ["apartment_id"])
    op.create_index("ix_reservations_client_id", "reservations", ["client_id"])
    op.create_index("ix_reservations_check_in_date", "reservations", ["check_in_date"])
    op.create_index("ix_reservations_status", "reservations", ["status"])

    op.create_table(
        "reservation_payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "reservation_id",
            sa.Integer(),
            sa.ForeignKey("reservations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", MONEY, nullable=False),
        _now_column("payment_date"),
        sa.Column("payment_method", sa.String(32), nullable=False),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _now_column("created_at"),
        sa.CheckConstraint("amount > 0", name="ck_reservation_payments_amount_positive"),
    )
    op.create_index(
        "ix_reservation_payments_reservation_id", "reservation_payments", ["reservation_id"]
    )

    op.create_table(
        "monthly_summaries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("total_reservations", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_payments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_revenue", MONEY, nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("month", "year", name="uq_monthly_summaries_month_year"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_monthly_summaries_month"),
        sa.CheckConstraint("year BETWEEN 2000 AND 2100", name="ck_monthly_summaries_year"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("monthly_summaries")
    op.drop_index("ix_reservation_payments_reservation_id", table_name="reservation_payments")
    op.drop_table("reservation_payments")
    op.drop_index("ix_reservations_status", table_name="reservations")
    op.drop_index("ix_reservations_check_in_date", table_name="reservations")
    op.drop_index("ix_reservations_client_id", table_name="reservations")
    op.drop_index("ix_reservations_apartment_id", table_name="reservations")
    op.drop_table("reservations")
    # clients and apartments belong to the catalog side and are left in place
