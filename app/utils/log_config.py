"""
Logging setup for Quiescent Mover.

All modules log through loguru's shared ``logger``; this module only
decides where it goes and how loud it is.
"""

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", verbose: bool = False, sink=None) -> int:
    """
    Replace loguru's default handler with the application sink.

    Args:
        level: Minimum level name (ignored when verbose)
        verbose: Force DEBUG so every event and timer reset is logged
        sink: Destination (defaults to stderr)

    Returns:
        Handler id from ``logger.add``
    """
    logger.remove()
    return logger.add(
        sink if sink is not None else sys.stderr,
        format=LOG_FORMAT,
        level="DEBUG" if verbose else level.upper(),
    )
