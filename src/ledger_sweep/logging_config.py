import logging
import logging.config
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "/tmp/ledger_sweep.log")

HANDLERS = ["console", "file"]

# Library loggers and the level they are held at
QUIET = {
    "fastapi": "INFO",
    "uvicorn.access": "WARNING",  # one line per request otherwise
    "httpx": "WARNING",  # one line per RPC otherwise
    "xrpl": "WARNING",
}


def _logger(level: str) -> dict:
    return {"level": level, "handlers": HANDLERS, "propagate": False}


LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "console": {
            "format": "%(asctime)s %(levelname)-7s %(message)s",
            "datefmt": "%H:%M:%S",
        },
        "file": {
            "format": "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
            "stream": sys.stdout,
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "file",
            "filename": LOG_FILE,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "delay": True,
        },
    },
    "loggers": {
        "ledger_sweep": _logger(LOG_LEVEL),
        **{name: _logger(level) for name, level in QUIET.items()},
    },
    "root": {"level": "WARNING", "handlers": HANDLERS},
}


def setup_logging(level: str | None = None):
    """Apply the logging configuration, optionally overriding LOG_LEVEL."""
    if level:
        LOGGING_CONFIG["loggers"]["ledger_sweep"]["level"] = level.upper()
    logging.config.dictConfig(LOGGING_CONFIG)
    os.environ.setdefault("PYTHONUNBUFFERED", "1")
