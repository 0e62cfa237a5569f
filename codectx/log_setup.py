"""Logging setup for codectx applications embedding the retrieval engine."""

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(verbose: bool = False, log_file: Optional[Union[str, Path]] = None) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: Log at DEBUG instead of INFO
        log_file: Also write plain-text logs to this file, rotated at 10 MB
    """
    logger.remove()  # Remove default handler

    log_level = "DEBUG" if verbose else "INFO"

    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=log_level,
        colorize=True,
    )

    if log_file is not None:
        logger.add(
            str(log_file),
            format=LOG_FORMAT,
            level=log_level,
            colorize=False,
            rotation="10 MB",
            retention=3,
            enqueue=True,
        )
