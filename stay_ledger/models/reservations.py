# models/reservations.py

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func

from stay_ledger.models.base import Base

MONEY = Numeric(12, 2)

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_CHECKED_IN = "checked_in"
STATUS_CHECKED_OUT = "checked_out"
STATUS_CANCELLED = "cancelled"

RESERVATION_STATUSES = (
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_CHECKED_IN,
    STATUS_CHECKED_OUT,
    STATUS_CANCELLED,
)

PAYMENT_METHODS = ("card", "cash", "transfer", "paypal", "zelle", "stripe", "other")


class Reservation(Base):
    """
    ORM model for a booked stay.

    Holds the charge inputs of the pricing formula next to the derived totals
    (total_amount, amount_due) and the payment summary (amount_paid,
    payment_status). Check-in and check-out are property-local wall-clock
    times, so they are stored without a timezone. ``version`` is bumped on
    every write and compared on update to detect concurrent edits.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("nights >= 1", name="ck_reservations_nights_positive"),
        CheckConstraint("amount_paid >= 0", name="ck_reservations_amount_paid_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    apartment_id = Column(Integer, ForeignKey("apartments.id"), nullable=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True, index=True)
    check_in_date = Column(DateTime(timezone=False), nullable=True, index=True)
    check_out_date = Column(DateTime(timezone=False), nullable=True)
    nights = Column(Integer, nullable=True)

    price_per_night = Column(MONEY, nullable=True)
    cleaning_fee = Column(MONEY, nullable=True, server_default="0")
    cancellation_fee = Column(MONEY, nullable=True, server_default="0")
    other_expenses = Column(MONEY, nullable=True, server_default="0")
    parking_fee = Column(MONEY, nullable=True, server_default="0")
    taxes = Column(MONEY, nullable=True, server_default="0")

    total_amount = Column(MONEY, nullable=True)
    amount_paid = Column(MONEY, nullable=False, server_default="0")
    amount_due = Column(MONEY, nullable=True)

    status = Column(String(32), nullable=False, server_default="pending", index=True)
    payment_status = Column(String(32), nullable=False, server_default="pending")
    notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False, server_default="1")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class ReservationPayment(Base):
    """
    One entry of a reservation's payment ledger.

    Entries are append-only; the reservation's amount_paid is the running sum
    of its entries. Deleting a reservation removes its ledger with it.
    """

    __tablename__ = "reservation_payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_reservation_payments_amount_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(
        Integer,
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = Column(MONEY, nullable=False)
    payment_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    payment_method = Column(String(32), nullable=False)
    payment_reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
