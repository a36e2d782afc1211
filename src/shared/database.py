"""SQLAlchemy engine, session factory and schema helpers."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Engine, Numeric, create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker


class Base(DeclarativeBase):
    type_annotation_map = {
        Decimal: Numeric(12, 2),
        datetime: DateTime(),
    }


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Requests may be served from a worker thread other than the one
        # that opened the pooled connection.
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30

    engine = create_engine(database_url, echo=echo, connect_args=connect_args)

    if database_url.startswith("sqlite"):

        @event.listens_for(engine, "connect")
        def _configure_connection(dbapi_connection, connection_record):  # noqa: ARG001
            # Transactions are opened by the "begin" listener below
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            # Writers serialize on the database lock from the first statement
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def _register_models() -> None:
    """Import every mapped module so its tables are attached to ``Base.metadata``."""
    import commissions.commission  # noqa: F401
    import inventory.listing.listing  # noqa: F401
    import ordering.cart.cart  # noqa: F401
    import ordering.coupon.coupon  # noqa: F401
    import ordering.order.order  # noqa: F401
    import ordering.order.returns  # noqa: F401
    import ordering.referral.referral  # noqa: F401
    import ticketing.show.show  # noqa: F401
    import ticketing.ticket.ticket  # noqa: F401


def setup_db(engine: Engine) -> None:
    """Create all tables."""
    _register_models()
    Base.metadata.create_all(engine)


def drop_db(engine: Engine) -> None:
    """Drop all tables."""
    _register_models()
    Base.metadata.drop_all(engine)
