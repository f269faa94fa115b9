"""
Health and readiness check endpoints for container probes.

/health only says the process is up. /ready also checks that the database
answers and that the ledger tables have been migrated, since a reachable but
empty database would fail every reservation request.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from stay_ledger.db.engine import check_engine_health, missing_ledger_tables
from stay_ledger.dependencies import get_db_engine

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health_check() -> JSONResponse:
    """
    Liveness probe endpoint.

    Example:
        >>> GET /health
        {"status": "ok"}
    """
    return JSONResponse(content={"status": "ok"})


@router.get("/ready")
def readiness_check(engine: Engine = Depends(get_db_engine)) -> JSONResponse:
    """
    Readiness probe endpoint.

    Returns 200 when the database is reachable and migrated, 503 otherwise.

    Example:
        >>> GET /ready
        {"status": "ready", "checks": {"database": "ok", "schema": "ok"}}
    """
    if not check_engine_health(engine):
        logger.error("readiness_check_failed", reason="database_not_accessible")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "checks": {"database": "failed"}},
        )

    missing = missing_ledger_tables(engine)
    if missing:
        logger.error("readiness_check_failed", reason="schema_not_migrated", missing=missing)
        return JSONResponse(
            status_code=503,
            content={
                "status": "not ready",
                "checks": {"database": "ok", "schema": "failed"},
                "missingTables": missing,
            },
        )

    return JSONResponse(content={"status": "ready", "checks": {"database": "ok", "schema": "ok"}})
