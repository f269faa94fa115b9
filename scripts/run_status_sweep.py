import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse  # noqa: E402
from datetime import datetime  # noqa: E402

import structlog  # noqa: E402

from stay_ledger.config import DATABASE_URL  # noqa: E402
from stay_ledger.db.engine import create_db_engine  # noqa: E402
from stay_ledger.logging_config import setup_logging  # noqa: E402
from stay_ledger.services.reservations import ReservationService  # noqa: E402

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Advance today's check-ins and check-outs once.

    Intended for a daily cron entry. ``--date YYYY-MM-DD`` replays the sweep
    for another day.
    """
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument("--date", help="Day to sweep (YYYY-MM-DD), defaults to today")
    args = parser.parse_args()

    today = datetime.strptime(args.date, "%Y-%m-%d") if args.date else None
    engine = create_db_engine(DATABASE_URL)
    try:
        result = ReservationService(engine).advance_statuses(today)
        logger.info("status_sweep_script_finished", **result)
    except Exception:
        logger.exception("status_sweep_script_failed")
        raise
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
