"""Unified logging configuration for promptflow."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import LOG_DIR, LOG_LEVEL

# Prevent duplicate handlers
_configured_loggers: set[str] = set()


def _log_dir() -> Optional[Path]:
    if not LOG_DIR:
        return None
    path = Path(LOG_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def setup_logger(name: str, filename: str, level: str = LOG_LEVEL) -> logging.Logger:
    """Setup a logger with console and (when LOG_DIR is set) file handlers.

    Args:
        name: Logger name (e.g., 'engine', 'api')
        filename: Log file name (e.g., 'engine.log')
        level: Level name applied to the logger and its handlers

    Returns:
        Configured logger instance
    """
    if name in _configured_loggers:
        return logging.getLogger(name)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False  # Prevent duplicate logs

    log_dir = _log_dir()
    if log_dir is not None:
        fh = logging.FileHandler(log_dir / filename, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s [%(name)s] [%(levelname)s] %(message)s"
        ))
        logger.addHandler(fh)

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] %(message)s"
    ))
    logger.addHandler(sh)

    _configured_loggers.add(name)
    return logger


def get_engine_logger() -> logging.Logger:
    """Logger for run lifecycle (coordinator, job, CLI)."""
    return setup_logger("promptflow", "engine.log")


def get_api_logger() -> logging.Logger:
    """Logger for API requests."""
    return setup_logger("promptflow_server", "api.log")
