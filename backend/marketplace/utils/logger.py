"""
Logging utilities.

WHAT: Root logger configuration for the marketplace backend
WHY: Every state transition is logged; the file keeps a DEBUG trail while
     the console stays readable
HOW: stdlib logging, a stdout handler and a file handler at LOG_FILE
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from ..core.config import Settings, settings as default_settings

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(pathname)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Per-statement SQL and per-request access lines drown out lifecycle events
NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging(settings: Optional[Settings] = None):
    """
    Configure the root logger.

    Replaces any handlers already installed, so calling it twice is safe.
    Console shows INFO (DEBUG when settings.DEBUG); the file gets everything
    the root level lets through.

    Args:
        settings: Settings to read LOG_LEVEL, LOG_FILE and DEBUG from
                  (module default if None)
    """
    settings = settings or default_settings

    log_file = Path(settings.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_level = logging.DEBUG if settings.DEBUG else logging.INFO
    root_logger.addHandler(_handler(logging.StreamHandler(sys.stdout), console_level, CONSOLE_FORMAT))
    root_logger.addHandler(_handler(logging.FileHandler(log_file, encoding="utf-8"), logging.DEBUG, FILE_FORMAT))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized (level={settings.LOG_LEVEL}, file={log_file})")


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass __name__."""
    return logging.getLogger(name)
