"""
loguru sink configuration.

loguru ships with a DEBUG-level stderr sink. Applications embedding the toolkit
call 'configure_logging' once at startup to replace it with a single sink at
the configured level, optionally serialised as JSON for log shippers.
"""

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", json_logs: bool = False) -> int:
    """Replace all loguru sinks with one stderr sink and return its handler id."""
    logger.remove()
    return logger.add(
        sys.stderr,
        level=level.upper(),
        format=LOG_FORMAT,
        serialize=json_logs,
        backtrace=False,
        diagnose=False,
    )
