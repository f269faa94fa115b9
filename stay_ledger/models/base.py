from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Declarative base shared by the ledger tables and the reference tables.

    Alembic reads ``Base.metadata`` for autogenerate, and the test suite uses
    it to create the schema on an in-memory database.
    """

    pass
