"""
Logging setup.

One file handler plus stderr on the root logger; modules log through the
root `logging` functions.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# One line per HTTP request; held at WARNING
NOISY_LOGGERS = ("uvicorn.access",)


def setup_logging(log_path: str, log_level: str, quiet: Iterable[str] = NOISY_LOGGERS) -> None:
    """
    Configure the root logger. Safe to call again; earlier handlers are replaced.

    Args:
        log_path: Log file, its directory is created if missing.
        log_level: Level name, e.g. "INFO".
        quiet: Logger names raised to WARNING regardless of `log_level`.
    """
    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    level = getattr(logging, log_level.upper())
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler(),
        ],
        force=True,
    )

    for name in quiet:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
