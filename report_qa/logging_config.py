"""Application logging configuration."""

from __future__ import annotations

import logging.config

from report_qa.config import settings

_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once at process start (API server or worker)."""

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": _FORMAT}},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "level": (level or settings.log_level).upper(),
                "handlers": ["default"],
            },
            "loggers": {
                # SQL echo is controlled by the engine; keep the driver quiet.
                "sqlalchemy.engine": {"level": "WARNING"},
                "httpx": {"level": "WARNING"},
            },
        }
    )
