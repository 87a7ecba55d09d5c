"""Unified logging configuration for the compiler."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from forge import settings

# Prevent duplicate handlers
_configured_loggers: set[str] = set()


def setup_logger(name: str, filename: str, log_dir: Optional[Path] = None) -> logging.Logger:
    """Setup a logger with file and console handlers.

    Args:
        name: Logger name (e.g., 'forge', 'forge.assets')
        filename: Log file name (e.g., 'forge.log')
        log_dir: Directory for the log file, defaults to FORGE_LOG_DIR

    Returns:
        Configured logger instance
    """
    if name in _configured_loggers:
        return logging.getLogger(name)

    directory = log_dir or settings.LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.propagate = False  # Prevent duplicate logs

    # File handler
    fh = logging.FileHandler(directory / filename, encoding='utf-8')
    fh.setLevel(logging.INFO)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] [%(levelname)s] %(message)s"
    ))

    # Console handler (stderr; stdout belongs to the MCP stdio transport)
    sh = logging.StreamHandler()
    sh.setLevel(logging.INFO)
    sh.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] %(message)s"
    ))

    logger.addHandler(fh)
    logger.addHandler(sh)

    _configured_loggers.add(name)
    return logger


def get_forge_logger() -> logging.Logger:
    """Root logger for the whole ``forge.*`` namespace."""
    return setup_logger("forge", "forge.log")
