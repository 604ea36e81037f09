"""Logging setup for the ratify command line."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"


def level_for_verbosity(verbosity: int) -> str:
    if verbosity <= 0:
        return "WARNING"
    if verbosity == 1:
        return "INFO"
    return "DEBUG"


def setup_logging(verbosity: int = 0, log_file: Optional[Path] = None) -> None:
    """
    Configure loguru sinks.

    Args:
        verbosity: Number of -v flags; 0 warnings only, 1 info, 2+ debug
        log_file: Optional file that receives debug output regardless of verbosity
    """
    logger.remove()
    logger.add(sys.stderr, level=level_for_verbosity(verbosity), format=LOG_FORMAT, colorize=None)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention="7 days")
