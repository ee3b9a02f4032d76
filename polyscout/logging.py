"""Logging configuration for the discovery and order engine.

Two loggers are used: ``scout-gateway`` for upstream HTTP and exchange
calls, ``scout-engine`` for normalization, scoring and order flow. Both
write to stderr so that CLI output on stdout stays machine-readable.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name (usually a short component name)
        level: Logging level (default INFO)
    """
    logger = logging.getLogger(name)

    # Only configure if not already configured
    if not logger.handlers:
        logger.setLevel(level)

        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

        logger.propagate = False

    return logger


def set_log_level(name: str, level: int | str) -> None:
    """Set log level for a specific logger.

    Args:
        name: Logger name
        level: New logging level, as an int or a name such as "DEBUG"
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


GATEWAY_LOGGER_NAME = "scout-gateway"
ENGINE_LOGGER_NAME = "scout-engine"

gateway_logger = get_logger(GATEWAY_LOGGER_NAME)
engine_logger = get_logger(ENGINE_LOGGER_NAME)


def configure(level: int | str) -> None:
    """Set the level of every engine logger at once."""
    for name in (GATEWAY_LOGGER_NAME, ENGINE_LOGGER_NAME):
        set_log_level(name, level)
