"""
Logging utilities for the Managed Upgrade Node Keeper.
"""

import logging
import sys


def setup_logging(
    verbose: bool = False, log_file: str = "node-keeper.log"
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        verbose: Enable verbose (DEBUG) logging
        log_file: Path to log file

    Returns:
        Logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file),
        ],
    )

    # The kubernetes client logs every request body at DEBUG
    logging.getLogger("kubernetes").setLevel(logging.WARNING)

    return logging.getLogger(__name__)
