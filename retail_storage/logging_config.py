"""
Logging for the storage layer.

Provisioning results, ETag conflicts, remote API failures, skipped queue
notifications and stock releases are all written to the "retail_storage"
logger on stdout. The level comes from the LOG_LEVEL setting.
"""
import logging
import sys

from retail_storage.config import settings

LOGGER_NAME = "retail_storage"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> logging.Logger:
    """
    Return the storage layer logger, attaching its stdout handler once.

    Returns:
        logging.Logger: The "retail_storage" logger at the configured level
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.LOG_LEVEL.upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
