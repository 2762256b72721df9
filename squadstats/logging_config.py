"""Logging setup for the SquadStats service, whichever way it is launched."""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
HANDLER_NAME = "squadstats-stdout"

# Bibliothèques trop bavardes : jamais en dessous de WARNING
QUIET_LOGGERS = ("aiohttp", "redis", "uvicorn.access")


def resolve_level(level: Optional[str]) -> int:
    """Numeric level for a name like ``"debug"``; unknown or empty names mean INFO."""
    value = logging.getLevelName((level or "INFO").upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: Optional[str] = None) -> int:
    """
    Send all SquadStats logs to stdout at *level* (the ``LOG_LEVEL`` setting).

    Safe to call more than once: the stdout handler is installed a single
    time, later calls only change the level.

    Returns:
        The numeric level applied.
    """
    log_level = resolve_level(level)
    root = logging.getLogger()

    if not any(h.get_name() == HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)

    root.setLevel(log_level)
    logging.getLogger("squadstats").setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, log_level))

    logging.getLogger(__name__).debug(f"Logging initialized at level {logging.getLevelName(log_level)}")
    return log_level
