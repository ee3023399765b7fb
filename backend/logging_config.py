"""Logging setup shared by the backend service and the CLI modes."""

from __future__ import annotations

import logging
import os
from typing import Iterable

LOG_LEVEL_ENV = "BIOCASCADE_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT = "%H:%M:%S"

# Loggers that follow the configured level
PROJECT_LOGGERS = ("biocascade", "backend", "rendering")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def resolve_level(level: str | None = None) -> str:
    """Pick the log level: explicit argument, then environment, then INFO."""
    raw_level = level if level is not None else os.getenv(LOG_LEVEL_ENV)
    resolved = (raw_level or "INFO").strip().upper()
    if not isinstance(logging.getLevelName(resolved), int):
        logging.getLogger(__name__).warning("Unknown log level %r, using INFO", raw_level)
        return "INFO"
    return resolved


def configure_logging(
    *,
    level: str | None = None,
    fmt: str = DEFAULT_FORMAT,
    datefmt: str = DEFAULT_DATEFMT,
    include_uvicorn: bool = True,
    extra_loggers: Iterable[str] = (),
) -> logging.Logger:
    """Configure root logging and align the project loggers.

    Calling it again only re-applies levels; handlers are not duplicated.

    Args:
        level: Explicit log level name (falls back to ``BIOCASCADE_LOG_LEVEL``)
        fmt: Log format string
        datefmt: Date format string
        include_uvicorn: Whether uvicorn's loggers follow the same level
        extra_loggers: Additional logger names to align

    Returns:
        The backend logger (``biocascade.backend``)
    """
    resolved_level = resolve_level(level)
    logging.basicConfig(level=resolved_level, format=fmt, datefmt=datefmt)

    names = list(PROJECT_LOGGERS) + list(extra_loggers)
    if include_uvicorn:
        names.extend(UVICORN_LOGGERS)
    for name in names:
        logging.getLogger(name).setLevel(resolved_level)

    app_logger = logging.getLogger("biocascade.backend")
    app_logger.debug("Logging configured at %s", resolved_level)
    return app_logger
