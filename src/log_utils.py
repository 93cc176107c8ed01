"""
Logging utilities for the ECS Fleet Updater.
"""

import logging
import sys
from typing import Optional


def setup_logging(
    level: str = "INFO", verbose: bool = False, log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        level: Log level name (ERROR, WARNING, INFO, DEBUG)
        verbose: Enable verbose (DEBUG) logging regardless of level
        log_file: Optional path to a log file

    Returns:
        Logger instance
    """
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    # botocore is chatty at DEBUG
    logging.getLogger("botocore").setLevel(max(log_level, logging.INFO))

    return logging.getLogger(__name__)
