"""Application logging utilities."""

import copy
import logging
import warnings
from logging.config import dictConfig

warnings.filterwarnings(
    "ignore",
    message="pythonjsonlogger.jsonlogger has been moved",
    category=DeprecationWarning,
)

DEFAULT_LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": "pythonjsonlogger.json.JsonFormatter",
            "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
        "console": {
            "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        },
    },
    "handlers": {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "console",
        },
    },
    "loggers": {
        "httpx": {"level": "WARNING"},
        "pdfminer": {"level": "WARNING"},
    },
    "root": {
        "handlers": ["default"],
        "level": "INFO",
    },
}


def configure_logging(config: dict | None = None, *, json_logs: bool = False, level: str | None = None) -> None:
    """Configure logging for the application.

    An explicit ``config`` wins; otherwise the default layout is used with the
    JSON formatter swapped in when ``json_logs`` is set.
    """
    if config is not None:
        dictConfig(config)
        return

    resolved = copy.deepcopy(DEFAULT_LOGGING_CONFIG)
    if json_logs:
        resolved["handlers"]["default"]["formatter"] = "json"
    if level:
        resolved["root"]["level"] = level.upper()
    dictConfig(resolved)


def get_logger(name: str) -> logging.Logger:
    """Retrieve a logger with the given name."""
    return logging.getLogger(name)
