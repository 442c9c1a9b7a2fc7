"""
Logging Configuration

One stdout handler shared by the API, the background workers
(enrichment queue, metadata refresh) and the re-embed script, so
request and job lines interleave in a single stream.

Embedding and LLM SDKs log every HTTP call at INFO; they are held at
WARNING so a scheduler tick does not bury its own summary line.
"""

from __future__ import annotations

import sys
from logging.config import dictConfig
from typing import Any

from inquiry_memory.core.config import settings

# Client libraries used by the embedding backends and LLM providers
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "openai",
    "anthropic",
    "sentence_transformers",
)


def _console_logger(level: str) -> dict[str, Any]:
    return {"level": level, "handlers": ["console"], "propagate": False}


def build_logging_config(level: str | None = None) -> dict[str, Any]:
    """
    dictConfig payload for the given level (defaults to LOG_LEVEL).

    At DEBUG, SQL statements are logged as well; otherwise the engine
    only reports warnings.
    """
    log_level = (level or settings.LOG_LEVEL).upper()

    loggers = {
        "inquiry_memory": _console_logger(log_level),
        "uvicorn": _console_logger("INFO"),
        "uvicorn.access": _console_logger("INFO"),
        "sqlalchemy.engine": _console_logger("INFO" if log_level == "DEBUG" else "WARNING"),
    }
    for name in QUIET_LOGGERS:
        loggers[name] = _console_logger("WARNING")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "default",
            },
        },
        "root": {"level": log_level, "handlers": ["console"]},
        "loggers": loggers,
    }


def setup_logging(level: str | None = None) -> None:
    """Apply the logging config. Called once by the app module and the re-embed script."""
    dictConfig(build_logging_config(level))
