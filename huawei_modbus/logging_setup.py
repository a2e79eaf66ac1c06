"""Logging configuration for the Huawei Modbus reader

Everything goes to stderr (stdout carries the JSON document) and,
optionally, a log file. pymodbus logs every failed request itself; those
failures already come back as ReadResult errors, so its logger is kept
quiet unless we run at DEBUG.
"""

import logging
import sys
from typing import Optional

LOGGER_NAME = "huawei_modbus"
LIBRARY_LOGGERS = ("pymodbus",)

_logger: Optional[logging.Logger] = None


def _quiet_library_loggers(app_level: int):
    library_level = logging.WARNING if app_level <= logging.DEBUG else logging.CRITICAL
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the application logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR (unknown names fall back to INFO)
        log_file: Optional file path for a second handler

    Returns:
        The "huawei_modbus" logger
    """
    global _logger

    level = getattr(logging, log_level.upper(), logging.INFO)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers = []

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _quiet_library_loggers(level)

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Configured logger, set up with defaults on first use"""
    global _logger

    if _logger is None:
        _logger = setup_logging()

    return _logger
