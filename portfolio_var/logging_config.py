"""Logging setup for the VaR pipeline, built on loguru.

The package only emits records through ``loguru.logger``; applications opt
into a console sink by calling :func:`setup_logging`.
"""

import sys

from loguru import logger

from portfolio_var.config import get_settings


def setup_logging(log_level: str | None = None, colorize: bool = True) -> int:
    """Replace loguru's default handler with a formatted stderr sink.

    Returns the handler id so callers can remove it again.
    """
    logger.remove()

    if log_level is None:
        log_level = get_settings().log_level

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )
    handler_id = logger.add(
        sys.stderr,
        format=console_format,
        level=log_level,
        colorize=colorize,
        backtrace=True,
        diagnose=False,
    )
    logger.debug(f"Logging configured at {log_level}")
    return handler_id
