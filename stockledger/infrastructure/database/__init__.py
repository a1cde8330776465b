"""
Database initialization and session management.
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from stockledger.domain.services import IUnitOfWork
from stockledger.infrastructure.database.models import get_engine_url
from stockledger.infrastructure.database.unit_of_work import SqlUnitOfWork

logger = logging.getLogger(__name__)


def build_engine(url: str, isolation_level: str | None = None, **kwargs) -> Engine:
    """
    Create an engine for the ledger.

    pysqlite's own transaction handling does not support SAVEPOINT, so SQLite
    connections are switched to explicit BEGIN as SQLAlchemy recommends.
    """
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(url, echo=False, connect_args=connect_args, **kwargs)

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return engine

    if isolation_level:
        kwargs["isolation_level"] = isolation_level
    return create_engine(url, echo=False, **kwargs)


DATABASE_URL = get_engine_url(os.getenv("DATABASE_TYPE", "sqlite"))

engine = build_engine(DATABASE_URL, os.getenv("DATABASE_ISOLATION_LEVEL", "SERIALIZABLE"))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_unit_of_work() -> Callable[[], IUnitOfWork]:
    """Dependency - Factory of units of work bound to the configured database."""
    return lambda: SqlUnitOfWork(SessionLocal)


def init_db(bind: Engine | None = None) -> None:
    """Initialize database - create all tables."""
    bind = bind or engine
    if bind.url.get_backend_name() == "sqlite" and bind.url.database not in (None, "", ":memory:"):
        Path(bind.url.database).parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(bind=bind)
    logger.info("Database initialized (%d tables)", len(SQLModel.metadata.tables))
