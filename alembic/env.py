from logging.config import fileConfig
from typing import Any

from sqlalchemy import engine_from_config, pool

from alembic import context  # type: ignore[attr-defined]
from stay_ledger.config import DATABASE_URL
from stay_ledger.models.base import Base
from stay_ledger.models.clients import Apartment, Client  # noqa: F401
from stay_ledger.models.monthly_summaries import MonthlySummary  # noqa: F401
from stay_ledger.models.reservations import Reservation, ReservationPayment  # noqa: F401

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# MetaData of every model, for 'autogenerate' support
target_metadata = Base.metadata

# `alembic -x db_url=postgresql://... upgrade head` migrates another database
config.set_main_option(
    "sqlalchemy.url", context.get_x_argument(as_dictionary=True).get("db_url", DATABASE_URL)
)


def skip_empty_revisions(migration_context: Any, revision: Any, directives: list[Any]) -> None:
    """Do not write a revision file when autogenerate finds no model changes."""
    if getattr(config.cmd_opts, "autogenerate", False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    Configures the context with just a URL, so the SQL is emitted to the
    script output without a DBAPI connection.
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            process_revision_directives=skip_empty_revisions,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
