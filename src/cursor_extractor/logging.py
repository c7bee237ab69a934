"""Logging configuration for cursor-extractor.

Provides centralized logging setup with file output to ~/cursor-extractor/logs/.
Pipeline components take an optional ``logging.Logger`` so callers (and tests)
can inject their own; otherwise they fall back to get_logger().
"""

import logging
import sys
from pathlib import Path

# Default log directory
DEFAULT_LOG_DIR = Path.home() / "cursor-extractor" / "logs"

LOGGER_PREFIX = "cursor_extractor"


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Configure logging for a cursor-extractor component.

    Creates a logger with both file and optional console handlers.
    Log files are written to ~/cursor-extractor/logs/<name>.log.

    Args:
        name: Logger name (used for log filename)
        log_dir: Directory for log files (defaults to ~/cursor-extractor/logs/)
        level: Logging level (defaults to INFO)
        console: Whether to also log to console (defaults to True)

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR

    log_dir.mkdir(parents=True, exist_ok=True)

    # Configure the package root so every component logger inherits the handlers
    root = logging.getLogger(LOGGER_PREFIX)
    root.setLevel(level)

    logger = logging.getLogger(f"{LOGGER_PREFIX}.{name}")

    # Avoid adding duplicate handlers if already configured
    if root.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a cursor-extractor component.

    This function returns an existing logger or creates a basic one.
    For full configuration with file output, use setup_logging().

    Args:
        name: Logger name (will be prefixed with 'cursor_extractor.')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")
