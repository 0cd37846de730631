"""Console logging setup."""

from __future__ import annotations

import logging
import sys


def setup_console_logger(name: str = "perpdex", level: str = "INFO") -> logging.Logger:
    """Attach a single stdout handler to ``name`` (idempotent)."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)s | %(module)s | %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
