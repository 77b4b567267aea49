"""
Logging setup for the ``nightcrawler`` logger tree.

Components log through ``logging.getLogger(__name__)`` or
``get_component_logger``; the CLI calls ``configure_logging`` once, which
attaches a rich console handler and an optional file handler to the package
logger.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "nightcrawler"

_console = Console(stderr=True)


def configure_logging(
        level: str = "INFO",
        log_file: Optional[Path] = None,
        rich_console: bool = True,
        show_time: bool = True,
        show_path: bool = False
) -> logging.Logger:
    """
    Replace the handlers of the package logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file; parent directories are created
        rich_console: Use a RichHandler instead of a plain stderr handler
        show_time: Show timestamps in console output
        show_path: Show file paths in console output

    Returns:
        The package logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    if rich_console:
        console_handler = RichHandler(
            console=_console,
            show_time=show_time,
            show_path=show_path,
            rich_tracebacks=True
        )
        console_handler.setFormatter(logging.Formatter('%(message)s'))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))
    logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
        ))
        logger.addHandler(file_handler)

    return logger


def get_component_logger(component: str) -> logging.Logger:
    """Logger for a component, e.g. ``get_component_logger("cli")``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")
