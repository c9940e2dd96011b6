"""Logging configuration for command-line runs."""

from __future__ import annotations

import sys

from loguru import logger

LOG_FORMAT = "<level>{level: <8}</level> {name}: {message}"


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr so stdout only carries the report."""

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO", format=LOG_FORMAT)
