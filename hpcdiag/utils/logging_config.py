"""Logging configuration for the HPC Pack diagnostic tool."""

import logging
import sys
from pathlib import Path
from typing import Optional, Union


LOG_FORMAT = '%(asctime)s.%(msecs)03d [%(levelname)-8s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def parse_level(level: Union[int, str]) -> int:
    """Convert a level name such as 'debug' or 'WARNING' to a logging level."""
    if isinstance(level, int):
        return level

    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def setup_logging(level: Union[int, str] = logging.WARNING,
                  log_file: Optional[Path] = None) -> logging.Logger:
    """
    Set up logging for the application.

    Diagnostic logs go to stderr so they never interleave with the report
    text written to stdout.

    Args:
        level: Minimum log level to capture
        log_file: Optional file path to also write logs to

    Returns:
        The configured root logger
    """
    level = parse_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear any existing handlers
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # urllib3 is chatty at INFO about every connection
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)
