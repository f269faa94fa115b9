"""
Unit tests for FastAPI dependency injection.
"""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from stay_ledger.config import STORE_TIMEOUT_SECONDS
from stay_ledger.dependencies import get_db_engine, get_reservation_service, get_store_timeout
from stay_ledger.services.reservations import ReservationService


@pytest.fixture
def app_with_di() -> FastAPI:
    """App exposing the engine, timeout and service dependencies."""
    app = FastAPI()

    @app.get("/engine")
    def engine_endpoint(engine: Engine = Depends(get_db_engine)) -> dict[str, str]:
        return {"engine_name": engine.name}

    @app.get("/timeout")
    def timeout_endpoint(timeout: float = Depends(get_store_timeout)) -> dict[str, float]:
        return {"timeout": timeout}

    @app.get("/service")
    def service_endpoint(
        service: ReservationService = Depends(get_reservation_service),
    ) -> dict[str, float]:
        return {"timeout": service.timeout_seconds}

    return app


@pytest.mark.unit
def test_get_db_engine_reads_app_state(app_with_di: FastAPI) -> None:
    """Test that the engine created on startup is handed to routes."""
    mock_engine = Mock(spec=Engine)
    mock_engine.name = "state_engine"
    app_with_di.state.engine = mock_engine

    response = TestClient(app_with_di).get("/engine")

    assert response.status_code == 200
    assert response.json() == {"engine_name": "state_engine"}


@pytest.mark.unit
def test_get_db_engine_without_startup_returns_503(app_with_di: FastAPI) -> None:
    """Test that requests before the engine exists are refused, not crashed."""
    response = TestClient(app_with_di).get("/engine")

    assert response.status_code == 503


@pytest.mark.unit
def test_dependency_injection_can_be_overridden(app_with_di: FastAPI) -> None:
    """Test that the engine dependency can be overridden for testing."""
    mock_engine = Mock(spec=Engine)
    mock_engine.name = "mock_engine"
    app_with_di.dependency_overrides[get_db_engine] = lambda: mock_engine

    response = TestClient(app_with_di).get("/engine")

    assert response.status_code == 200
    assert response.json() == {"engine_name": "mock_engine"}


@pytest.mark.unit
def test_store_timeout_defaults_to_config(app_with_di: FastAPI) -> None:
    """Test that without the header the configured timeout is used."""
    response = TestClient(app_with_di).get("/timeout")

    assert response.json() == {"timeout": STORE_TIMEOUT_SECONDS}


@pytest.mark.unit
def test_store_timeout_header_overrides_default(app_with_di: FastAPI) -> None:
    """Test that X-Store-Timeout sets the timeout for this request."""
    response = TestClient(app_with_di).get("/timeout", headers={"X-Store-Timeout": "1.5"})

    assert response.json() == {"timeout": 1.5}


@pytest.mark.unit
@pytest.mark.parametrize("value", ["0", "-2", "61", "soon"])
def test_store_timeout_header_out_of_range(app_with_di: FastAPI, value: str) -> None:
    """Test that unusable X-Store-Timeout values are rejected with 400."""
    response = TestClient(app_with_di).get("/timeout", headers={"X-Store-Timeout": value})

    assert response.status_code == 400


@pytest.mark.unit
def test_reservation_service_uses_request_timeout(app_with_di: FastAPI) -> None:
    """Test that the service is built with the per-request timeout."""
    app_with_di.dependency_overrides[get_db_engine] = lambda: Mock(spec=Engine)

    response = TestClient(app_with_di).get("/service", headers={"X-Store-Timeout": "2"})

    assert response.status_code == 200
    assert response.json() == {"timeout": 2.0}
