"""Centralized logging configuration for the greyscale pipeline."""

import os
import sys
import logging
from typing import Optional

DEFAULT_LOGGER_NAME = "greyscale-pipeline"

STRUCTURED_FORMAT = (
    "%(asctime)s | %(name)s | %(levelname)-8s | "
    "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s"
)
SIMPLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Setup centralized logging with environment variable configuration.

    Args:
        name: Logger name (defaults to "greyscale-pipeline")
        level: Log level override (defaults to env var or INFO when the
            handler is first installed; an existing logger keeps its level)
        format_type: Logging format ("structured" or "simple")

    Returns:
        Configured logger instance

    Environment Variables:
        LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_FORMAT: Set format type ("structured" or "simple")
    """
    logger = logging.getLogger(name)

    if level:
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid duplicate handlers
    if not logger.handlers:
        if not level:
            env_level = os.getenv("LOG_LEVEL", "INFO").upper()
            logger.setLevel(getattr(logging, env_level, logging.INFO))

        handler = logging.StreamHandler(sys.stdout)

        env_format = os.getenv("LOG_FORMAT", format_type).lower()
        if env_format == "structured":
            formatter = logging.Formatter(STRUCTURED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        else:
            formatter = logging.Formatter(SIMPLE_FORMAT)

        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance with consistent configuration.

    Names without the package prefix are nested under it, so
    ``get_logger("storage")`` returns ``greyscale-pipeline.storage``. Nested
    loggers carry no handler or level of their own: they inherit both from
    the package logger, so ``setup_logger(level="DEBUG")`` reaches them all.
    """
    package_logger = setup_logger()
    if name == DEFAULT_LOGGER_NAME:
        return package_logger
    if not name.startswith(DEFAULT_LOGGER_NAME + "."):
        name = f"{DEFAULT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


logger = setup_logger()
