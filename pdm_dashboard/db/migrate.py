"""
Alembic-free migration helper.

Run `python -m pdm_dashboard.db.migrate` to create / update tables.
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

from pdm_dashboard.config import settings
from pdm_dashboard.db.models import Base

logger = logging.getLogger("pdm.db.migrate")


def run_migrations(engine: Engine | None = None) -> None:
    if engine is None:
        from pdm_dashboard.db.session import engine

    path = settings.sqlite_path
    if path is not None and str(engine.url) == settings.database_url:
        path.parent.mkdir(parents=True, exist_ok=True)

    Base.metadata.create_all(engine)
    logger.info("Database tables created / verified (%s).", engine.url)


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper())
    run_migrations()
