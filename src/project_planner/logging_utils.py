"""Configure logging for the server and CLI."""

from __future__ import annotations

import logging
import sys

from loguru import logger


def configure_logging(level: str = "INFO") -> None:
    """Configure loguru logger with the specified level.

    The library modules log through the standard ``logging`` package; their
    records go to stderr at the same level.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
            "{message}"
        ),
    )
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d\n%(message)s",
        stream=sys.stderr,
        force=True,
    )
