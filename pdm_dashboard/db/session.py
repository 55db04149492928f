"""
Engine and session factory for the SQLite database.

One writer at a time; WAL journal mode lets the dashboard keep reading
while an upload is being written.
"""

from __future__ import annotations

import logging
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pdm_dashboard.config import settings

logger = logging.getLogger("pdm.db")


def make_engine(database_url: str | None = None, echo: bool = False) -> Engine:
    url = database_url or settings.database_url
    in_memory = url in ("sqlite://", "sqlite:///:memory:")

    if in_memory:
        # A single shared connection, otherwise every checkout sees an empty database.
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    else:
        engine = create_engine(url, connect_args={"check_same_thread": False}, echo=echo)

    @event.listens_for(engine, "connect")
    def _sqlite_pragmas(dbapi_conn, _record):  # noqa: ANN001
        cursor = dbapi_conn.cursor()
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    logger.info("Database engine ready: %s", url)
    return engine


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_session() -> Iterator[Session]:
    """FastAPI dependency: one session per request."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
