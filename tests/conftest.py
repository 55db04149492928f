"""
Shared fixtures: an in-memory SQLite database per test, a session bound to
it, a TestClient whose requests use that database, and CSV builders.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from pdm_dashboard.api.routes import app
from pdm_dashboard.db.migrate import run_migrations
from pdm_dashboard.db.session import get_session, make_engine

CSV_HEADER = "timestamp,asset_id,tempF,pressurePSI,vibrationMM,failure_flag"
START = datetime(2025, 1, 10, 10, 0, 0)


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    run_migrations(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def session(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def client(session_factory):
    """Test client; lifespan is not run so the on-disk database is never touched."""

    def override():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_session] = override
    yield TestClient(app)
    app.dependency_overrides.clear()


def sensor_csv(
    asset_id: str = "PUMP-101",
    count: int = 60,
    failures_from: int | None = None,
    start: datetime = START,
) -> bytes:
    """One reading per minute, temperature rising by 1°F each minute from 100."""
    lines = [CSV_HEADER]
    for i in range(count):
        ts = (start + timedelta(minutes=i)).strftime("%Y-%m-%dT%H:%M:%SZ")
        flag = 1 if failures_from is not None and i >= failures_from else 0
        lines.append(f"{ts},{asset_id},{100 + i},{150 + (i % 5)},{2.0 + i / 100:.2f},{flag}")
    return ("\n".join(lines) + "\n").encode()


@pytest.fixture
def make_csv():
    return sensor_csv
