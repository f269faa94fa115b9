"""
SQLAlchemy engine factory and transaction helpers.

The engine is built once by the application on startup (``create_db_engine``)
and disposed on shutdown. Every store call runs inside ``transaction``, which
applies a statement timeout and turns driver failures into application errors.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from stay_ledger.exceptions import PersistenceError, StoreUnavailableError, ValidationError
from stay_ledger.metrics import store_operation_duration

logger = structlog.get_logger(__name__)

# Tables written by the service; reference tables (clients, apartments) are not checked
LEDGER_TABLES = ("reservations", "reservation_payments", "monthly_summaries")


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine with connection pooling suited to the target database.

    Server databases get a bounded pool with pre-ping and recycling. SQLite
    (used by the test suite) shares one connection through a static pool so an
    in-memory database survives across requests and threads.

    Args:
        database_url: SQLAlchemy URL
        echo: Log every SQL statement

    Returns:
        Engine: New engine; the caller owns it and must dispose it.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        database_url,
        pool_size=10,  # Connections kept open
        max_overflow=20,  # Extra connections under burst load
        pool_pre_ping=True,  # Detect stale connections before use
        pool_recycle=3600,
        echo=echo,
    )


def check_engine_health(engine: Engine) -> bool:
    """
    Check if the database is reachable.

    Used by the /ready endpoint before the service accepts traffic.

    Returns:
        bool: True if a trivial query succeeds, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning("database_health_check_failed", error=str(e))
        return False


def missing_ledger_tables(engine: Engine) -> list[str]:
    """
    Tables the service writes to that do not exist yet.

    An empty list means the migrations have been applied. Unreachable
    databases are reported by check_engine_health, not here.
    """
    try:
        existing = set(inspect(engine).get_table_names())
    except SQLAlchemyError as e:
        logger.warning("ledger_schema_check_failed", error=str(e))
        return list(LEDGER_TABLES)
    return [name for name in LEDGER_TABLES if name not in existing]


def apply_statement_timeout(conn: Connection, timeout_seconds: Optional[float]) -> None:
    """
    Bound every statement of the current transaction.

    Only PostgreSQL supports a per-transaction timeout; other dialects are
    left alone.
    """
    if not timeout_seconds or conn.dialect.name != "postgresql":
        return
    milliseconds = max(1, int(timeout_seconds * 1000))
    conn.execute(text(f"SET LOCAL statement_timeout = {milliseconds}"))


@contextmanager
def transaction(
    engine: Engine, timeout_seconds: Optional[float] = None, operation: str = "store"
) -> Iterator[Connection]:
    """
    Open a transaction, commit on success and roll back on any error.

    Store timeouts and connectivity failures surface as
    ``StoreUnavailableError``, constraint violations as ``ValidationError`` and
    other database errors as ``PersistenceError``.
    Application errors raised inside the block propagate unchanged.

    Example:
        >>> with transaction(engine, 5, "update_reservation") as conn:
        ...     conn.execute(stmt)
    """
    started = time.perf_counter()
    try:
        with engine.begin() as conn:
            apply_statement_timeout(conn, timeout_seconds)
            yield conn
    except OperationalError as e:
        logger.error("store_unavailable", operation=operation, error=str(e.orig))
        raise StoreUnavailableError("Storage is temporarily unavailable") from e
    except IntegrityError as e:
        logger.warning("store_constraint_violated", operation=operation, error=str(e.orig))
        raise ValidationError("Write violates a data constraint") from e
    except DBAPIError as e:
        if e.connection_invalidated:
            logger.error("store_connection_lost", operation=operation, error=str(e.orig))
            raise StoreUnavailableError("Storage is temporarily unavailable") from e
        logger.error("store_operation_failed", operation=operation, error=str(e.orig))
        raise PersistenceError("Failed to persist changes") from e
    except SQLAlchemyError as e:
        logger.error("store_operation_failed", operation=operation, error=str(e))
        raise PersistenceError("Failed to persist changes") from e
    finally:
        store_operation_duration.labels(operation=operation).observe(
            time.perf_counter() - started
        )
