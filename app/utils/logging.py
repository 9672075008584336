"""structlog configuration shared by the sprite pipeline.

Environment:
  LOG_LEVEL   — minimum level (default ``INFO``)
  LOG_FORMAT  — ``json`` for one JSON object per line; anything else renders
                human-readable console output.

Logs go to stderr so that script stdout stays machine-readable.
"""

import logging
import os
import sys

import structlog

_configured = False


def configure_logging(level: str | None = None, json: bool | None = None) -> None:
    """Configure structlog once per process.

    Args:
        level: Level name (``"DEBUG"``, ``"INFO"``...).  Defaults to the
            ``LOG_LEVEL`` env var, then ``INFO``.
        json:  Force JSON rendering on or off.  Defaults to
            ``LOG_FORMAT == "json"``.
    """
    global _configured

    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    numeric = logging.getLevelName(level_name)
    if not isinstance(numeric, int):
        numeric = logging.INFO

    if json is None:
        json = os.environ.get("LOG_FORMAT", "").lower() == "json"

    renderer = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a named structlog logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)
