"""
Shared fixtures for unit and integration tests.

Integration tests run against an in-memory SQLite database created from
``Base.metadata``; the API client overrides the engine, email and document
dependencies so no test needs a running PostgreSQL or SMTP server.
"""

from __future__ import annotations

import os

# Required settings must exist before stay_ledger.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ALLOWED_ORIGINS", "*")

from datetime import datetime  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, Callable, Generator  # noqa: E402
from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from stay_ledger.db.engine import create_db_engine, transaction  # noqa: E402
from stay_ledger.db.writers.reservations import insert_reservation  # noqa: E402
from stay_ledger.dependencies import (  # noqa: E402
    get_db_engine,
    get_document_renderer,
    get_email_service,
)
from stay_ledger.documents.pdf import DocumentRenderer  # noqa: E402
from stay_ledger.main import app  # noqa: E402
from stay_ledger.models.base import Base  # noqa: E402
from stay_ledger.models.clients import Apartment, Client  # noqa: E402
from stay_ledger.models.monthly_summaries import MonthlySummary  # noqa: E402,F401
from stay_ledger.models.reservations import Reservation  # noqa: E402,F401
from stay_ledger.notifications.email import DeliveryReceipt, EmailService  # noqa: E402
from stay_ledger.services.reservations import ReservationService  # noqa: E402

# Defaults for a reservation inserted straight into the store:
# 3 nights at 100 + 50 cleaning + 10 taxes = 360
RESERVATION_DEFAULTS: dict[str, Any] = {
    "check_in_date": datetime(2025, 6, 10, 15, 0),
    "check_out_date": datetime(2025, 6, 13, 11, 0),
    "nights": 3,
    "price_per_night": Decimal("100.00"),
    "cleaning_fee": Decimal("50.00"),
    "cancellation_fee": Decimal("0.00"),
    "other_expenses": Decimal("0.00"),
    "parking_fee": Decimal("0.00"),
    "taxes": Decimal("10.00"),
    "total_amount": Decimal("360.00"),
    "amount_paid": Decimal("0.00"),
    "amount_due": Decimal("360.00"),
    "status": "confirmed",
    "payment_status": "pending",
}


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with every table created."""
    test_engine = create_db_engine("sqlite://")
    Base.metadata.create_all(test_engine)

    yield test_engine

    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def make_client(engine: Engine) -> Callable[..., int]:
    """Factory inserting a guest record; returns its id."""

    def _make(
        name: str = "Ana",
        lastname: str = "Lopez",
        email: str = "ana.lopez@example.com",
        phone: str = "+1 305 555 0100",
    ) -> int:
        with engine.begin() as conn:
            result = conn.execute(
                insert(Client).values(name=name, lastname=lastname, email=email, phone=phone)
            )
            return result.inserted_primary_key[0]

    return _make


@pytest.fixture
def make_apartment(engine: Engine) -> Callable[..., int]:
    """Factory inserting an apartment; returns its id."""

    def _make(name: str = "Ocean View 4B", address: str = "1200 Collins Ave") -> int:
        with engine.begin() as conn:
            result = conn.execute(insert(Apartment).values(name=name, address=address))
            return result.inserted_primary_key[0]

    return _make


@pytest.fixture
def make_reservation(engine: Engine) -> Callable[..., int]:
    """
    Factory inserting a reservation row directly, bypassing the service.

    Lets tests create rows the API would refuse (missing charge fields,
    arbitrary statuses). Returns the new id.
    """

    def _make(**overrides: Any) -> int:
        values = {**RESERVATION_DEFAULTS, **overrides}
        with transaction(engine) as conn:
            return insert_reservation(conn, values)

    return _make


@pytest.fixture
def email_service() -> Mock:
    """Email collaborator that accepts every message."""
    service = Mock(spec=EmailService)
    service.send.side_effect = lambda to_address, kind, payload, attachment=None: DeliveryReceipt(
        to_address=to_address,
        template_kind=kind,
        subject=f"{kind} subject",
        message_id="<test-message@example.com>",
        sent_at=datetime(2025, 6, 1, 12, 0),
    )
    return service


@pytest.fixture
def service(engine: Engine, email_service: Mock) -> ReservationService:
    """Reservation service over the test database."""
    return ReservationService(
        engine,
        email_service=email_service,
        renderer=DocumentRenderer(business_name="Test Stays"),
        timeout_seconds=None,
    )


@pytest.fixture
def api_client(engine: Engine, email_service: Mock) -> Generator[TestClient, None, None]:
    """FastAPI test client wired to the test database and the mocked email service."""
    app.dependency_overrides[get_db_engine] = lambda: engine
    app.dependency_overrides[get_email_service] = lambda: email_service
    app.dependency_overrides[get_document_renderer] = lambda: DocumentRenderer(
        business_name="Test Stays"
    )

    yield TestClient(app)

    app.dependency_overrides.clear()
