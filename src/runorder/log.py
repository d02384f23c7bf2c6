"""Logging setup for the command-line interface."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def configure_logging(level: str = "WARNING", file: Optional[Path | str] = None) -> None:
    """Route runorder log messages to stderr and, optionally, a file.

    The library stays silent until this is called.

    Args:
        level: Minimum level for the stderr sink
        file: Optional log file, which receives everything from DEBUG up
    """
    logger.remove()
    logger.enable("runorder")
    logger.add(sys.stderr, level=level.upper())

    if file:
        logger.add(str(file), level="DEBUG")
