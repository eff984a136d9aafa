"""Logging configuration helpers."""

from __future__ import annotations

import logging
import logging.config
from typing import Any

from .config import LoggingSettings

# Third-party loggers that are chatty at INFO; capped at WARNING.
QUIET_LOGGERS = ("googleapiclient.discovery_cache", "httpx", "httpcore")

# uvicorn installs its own handlers; route its records through ours instead.
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _formatter(structured: bool) -> dict[str, Any]:
    if structured:
        return {
            "format": '{{"time": "{asctime}", "level": "{levelname}", '
            '"logger": "{name}", "message": "{message}"}}',
            "style": "{",
        }
    return {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"}


def _logger_overrides(level: str) -> dict[str, dict[str, Any]]:
    overrides: dict[str, dict[str, Any]] = {
        name: {"level": "WARNING"} for name in QUIET_LOGGERS
    }
    for name in SERVER_LOGGERS:
        overrides[name] = {"level": level, "handlers": [], "propagate": True}
    return overrides


def configure_logging(settings: LoggingSettings) -> None:
    """Install a single console handler on the root logger.

    The level applies to the root logger and to uvicorn's loggers, which are
    made to propagate so HTTP access lines share the application format.
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": _formatter(settings.structured)},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": settings.level,
                },
            },
            "loggers": _logger_overrides(settings.level),
            "root": {"handlers": ["console"], "level": settings.level},
        }
    )
    logging.getLogger(__name__).debug(
        "Logging configured at %s (structured=%s)", settings.level, settings.structured
    )


__all__ = ["configure_logging"]
