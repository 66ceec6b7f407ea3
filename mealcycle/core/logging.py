"""Logging setup shared by the API process and job invocations."""
import logging
import logging.config

from mealcycle.core.config import settings


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once from settings."""

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["console"],
                "level": (level or settings.LOG_LEVEL).upper(),
            },
            "loggers": {
                # SQL echo is controlled by DB_ECHO, keep the engine logger quiet otherwise
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )
