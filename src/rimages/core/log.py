from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

LOG_LEVEL_ENV = "RIMAGES_LOG_LEVEL"
LOGGER_NAME = "rimages"


def level_from_env(default: int = logging.INFO) -> int:
    raw = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if not raw:
        return default
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def configure(log_level: int, log_path: Path | None = None, prefix: str | None = LOGGER_NAME) -> None:
    """Configure the application logger.

    Args:
        log_level: The desired verbosity level.
        log_path: Optional file to write logs to in addition to stdout.
        prefix: Logger name to configure (the package logger by default).
    """
    logger = logging.getLogger(prefix)

    # Reset to a known state so repeated calls do not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    logger.setLevel(log_level)
    logger.propagate = False

    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    if log_path is not None:
        file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
