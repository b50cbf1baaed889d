# geomap/core/logger.py
"""
Logging setup shared by the service and its adapters.

Every module keeps its own ``logger = logging.getLogger(__name__)``; this
module only installs the root handler once.
"""
import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(levelname)s - [%(name)s] - %(message)s"


def setup_logging(level: str | int = logging.INFO, name: str = "geomap") -> logging.Logger:
    """
    Configure the package logger with a stdout handler.

    Args:
        level: Logging level name or number
        name: Logger to configure (default: the package logger)

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    # Only configure if it hasn't been configured yet
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
