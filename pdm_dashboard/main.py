"""
Entry point — `python -m pdm_dashboard.main` or `uvicorn pdm_dashboard.api.routes:app`.
"""

import logging

import uvicorn

from pdm_dashboard.api.routes import app  # noqa: F401
from pdm_dashboard.config import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s  %(name)-20s  %(levelname)-7s  %(message)s",
)

if __name__ == "__main__":
    uvicorn.run(
        "pdm_dashboard.api.routes:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
