"""
Domain Migration Logging Configuration

Configurable logging with debug mode support and credential masking.
"""

import os
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional

from domain_migrator.migration.ui import mask_secrets


# Check for debug mode
DEBUG_MODE = os.environ.get("DOMAIN_MIGRATOR_DEBUG", "").lower() in ("1", "true", "yes")

ROOT_LOGGER = "domain_migrator"


class SecretMaskingFormatter(logging.Formatter):
    """Formatter that masks secrets in log messages."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        return mask_secrets(message)


def setup_logging(
    level: Optional[int] = None,
    log_file: Optional[Path] = None,
    quiet: bool = False
) -> logging.Logger:
    """Set up logging configuration.

    Args:
        level: Logging level (default: DEBUG if DOMAIN_MIGRATOR_DEBUG, else WARNING
            on the console; the file handler always records DEBUG)
        log_file: Optional path to log file
        quiet: If True, suppress console output

    Returns:
        Configured logger
    """
    if level is None:
        level = logging.DEBUG if DEBUG_MODE else logging.WARNING

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)

    # Clear existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)

        if DEBUG_MODE:
            console_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        else:
            console_format = "%(message)s"

        console_handler.setFormatter(SecretMaskingFormatter(console_format))
        logger.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
        except OSError as e:
            logger.warning("Cannot write log file %s: %s", log_file, e)
        else:
            file_handler.setLevel(logging.DEBUG)
            file_format = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
            file_handler.setFormatter(SecretMaskingFormatter(file_format))
            logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get a logger under the domain_migrator hierarchy.

    Args:
        name: Logger name (will be prefixed with 'domain_migrator.')

    Returns:
        Configured logger
    """
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"

    logger = logging.getLogger(name)

    parent = logging.getLogger(ROOT_LOGGER)
    if not parent.handlers:
        setup_logging()

    return logger


def get_log_path(log_dir: Path) -> Path:
    """Get the default log file path."""
    return log_dir / f"domain-migration-{datetime.now().strftime('%Y-%m-%d')}.log"
