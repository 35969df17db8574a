"""
Centralized logging configuration for gobin-update.

Console output goes to stderr so that stdout only carries the version table.
"""

import logging
import sys
from pathlib import Path
from typing import Optional


LOGGER_NAME = "gobin_update"

LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Aliases accepted from the LOG environment variable
LEVEL_ALIASES = {
    "WARN": "WARNING",
    "FATAL": "CRITICAL",
}

def normalize_level(name: str) -> str:
    """
    Normalize a log level name.

    Args:
        name: Level name in any case (e.g., "debug", "warn", "ERROR")

    Returns:
        Canonical level name (e.g., "DEBUG", "WARNING")

    Raises:
        ValueError: If the name is not a known level
    """
    level = name.strip().upper()
    level = LEVEL_ALIASES.get(level, level)
    if level not in LEVEL_NAMES:
        raise ValueError(
            f"Invalid log level: {name}. "
            f"Must be one of: {', '.join(LEVEL_NAMES)}"
        )
    return level


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[str] = None,
    propagate: bool = False,
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
        propagate: Allow log propagation (useful for testing)

    Returns:
        Configured logger instance
    """
    effective_level = normalize_level(level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, effective_level))

    # Clear existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, effective_level))
    console_formatter = ColoredFormatter(
        "%(levelname_colored)s %(message)s",
        use_colors=sys.stderr.isatty()
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)

    logger.propagate = propagate

    return logger


class ColoredFormatter(logging.Formatter):
    """
    Formatter with colored output for different log levels.
    """

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[1;31m', # Bold Red
    }
    RESET = '\033[0m'

    SYMBOLS = {
        'DEBUG': '🔍',
        'INFO': '✓',
        'WARNING': '⚠️',
        'ERROR': '✗',
        'CRITICAL': '🚨',
    }

    def __init__(self, fmt: str, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        if self.use_colors:
            levelname = record.levelname
            color = self.COLORS.get(levelname, '')
            symbol = self.SYMBOLS.get(levelname, '')

            record.levelname_colored = f"{color}{symbol} {levelname}{self.RESET}"
        else:
            record.levelname_colored = f"[{record.levelname}]"

        return super().format(record)
