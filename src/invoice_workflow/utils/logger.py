"""Logging configuration for the invoice workflow package.

Library modules only call ``logging.getLogger(__name__)``; entry points
call ``setup_logger`` once to attach handlers to the package logger.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

__all__ = ["setup_logger", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
PACKAGE_LOGGER = "invoice_workflow"


def setup_logger(level: str = "INFO", log_file: Optional[str] = None,
                 max_bytes: int = 10485760, backup_count: int = 5) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a rotating log file
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The configured ``invoice_workflow`` logger
    """
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(numeric_level)
    package_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    package_logger.debug("Logging initialized at %s", logging.getLevelName(numeric_level))
    return package_logger
