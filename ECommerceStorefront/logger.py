# logger.py
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from ECommerceStorefront.config import LoggingConfig

LOGGER_NAME = "ECommerceStorefront"

FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """Set up the package logger with console and rotating file output.

    Calling it again replaces the handlers from the previous call.
    """
    config = config or LoggingConfig()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, config.level, logging.INFO))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if config.file:
        try:
            log_dir = os.path.dirname(config.file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                config.file,
                maxBytes=config.max_size,
                backupCount=config.backup_count,
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.error(f"Failed to set up file logging: {e}")

    return logger
