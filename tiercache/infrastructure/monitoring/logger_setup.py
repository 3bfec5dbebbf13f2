"""Centralized logging configuration for tiercache.

Sets up standard Python logging with appropriate levels, formatters,
and handlers (console, optional file). Library modules only create
module-level loggers; this is called once by the CLI.
"""

import logging
import sys
from typing import Optional, Union

DEFAULT_LOG_LEVEL = logging.WARNING
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = None


def resolve_log_level(level: Union[int, str, None], default: int = DEFAULT_LOG_LEVEL) -> int:
    """Accepts a level number or name ('debug', 'INFO') and returns the number."""
    if level is None:
        return default
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else default


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = DEFAULT_LOG_FILE
) -> None:
    """Configures the root logger for the application.

    Args:
        log_level: The minimum logging level (e.g., logging.DEBUG, logging.INFO).
        log_format: The format string for log messages.
        log_file: Optional path to a file for logging output.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers attached to the root logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)

    # stderr keeps command output on stdout clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logging.info(f"Logging to file: {log_file}")
        except OSError as e:
            logging.error(f"Failed to set up file logging to {log_file}: {e}", exc_info=True)

    logging.debug(f"Logging configured. Level={logging.getLevelName(log_level)}")
