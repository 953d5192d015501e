"""
Shared helpers for the app package.
"""
import logging
import sys

from app.core import config


LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger writing to stderr.

    Usage:
        log = get_logger(__name__)
        log.info("Initializing server")
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(config.LOG_LEVEL)
        # Handler is attached here, don't duplicate through the root logger
        logger.propagate = False
    return logger
