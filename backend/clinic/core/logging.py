from __future__ import annotations

import logging
from logging.config import dictConfig

from clinic.core.settings import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

log = logging.getLogger("clinic")


def configure_logging(level: str | None = None) -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": LOG_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {"level": "WARNING", "handlers": ["console"]},
            "loggers": {
                "clinic": {"level": (level or settings.log_level).upper()},
                # SQL echo stays off unless explicitly raised
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )
