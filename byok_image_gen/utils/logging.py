from __future__ import annotations

import sys

from loguru import logger

_LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> <level>{level: <8}</level> <cyan>{name}</cyan> - <level>{message}</level>"


def configure_logging(level: str = "INFO") -> None:
    """Route loguru output to stderr at ``level``.

    stdout stays clean for the stdio MCP transport.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=_LOG_FORMAT, backtrace=False, diagnose=False)
