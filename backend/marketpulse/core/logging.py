"""
Process-wide logging setup shared by the API, Celery workers and scripts.
"""

import logging
import sys
from typing import Optional

from marketpulse.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at the application level
LIBRARY_LEVELS = {
    "uvicorn": logging.INFO,
    "celery": logging.INFO,
    "sqlalchemy": logging.WARNING,
    "asyncpg": logging.WARNING,
    "redis": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging; ``level`` overrides LOG_LEVEL."""
    name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    for library, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(library).setLevel(library_level)
