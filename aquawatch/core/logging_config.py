"""
Logging setup for the AquaWatch server.

Detector decisions, alert lifecycle events and notification failures are
written both to the console and to ``<logs_dir>/<logger_name>.log``. The
level comes from ``AQUAWATCH_LOG_LEVEL``.
"""

import logging
import logging.handlers

from .config import config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def setup_logging(logger_name: str = "aquawatch") -> logging.Logger:
    """
    Attach console and size-rotated file handlers to ``logger_name``.

    Calling it again for a logger that already has handlers is a no-op, so
    the server entry point and tests can both call it safely.
    """
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    logger.setLevel(config.log_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers = [
        logging.StreamHandler(),
        logging.handlers.RotatingFileHandler(
            config.logs_dir / f"{logger_name}.log",
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUPS,
        ),
    ]
    for handler in handlers:
        handler.setLevel(config.log_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
