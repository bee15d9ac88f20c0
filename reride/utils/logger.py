# reride/utils/logger.py
"""
Logging setup shared by the client data layer and the reference backend.

Records go to the console and to a rotating file (LOG_FILE under LOG_DIR,
default <repo>/logs/). Configuration happens on the first get_logger() call.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from reride.config import settings

DEFAULT_LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs")
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Per-request INFO lines from these are dropped
QUIET_LOGGERS = ("httpx", "httpcore")

_configured = False


def _file_handler(level: str, fmt: logging.Formatter) -> RotatingFileHandler:
    log_dir = settings.LOG_DIR or DEFAULT_LOG_DIR
    os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(
        filename=os.path.join(log_dir, settings.LOG_FILE),
        maxBytes=5 * 1024 * 1024,
        backupCount=10,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    level = settings.LOG_LEVEL.upper()
    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(console)
    root.addHandler(_file_handler(level, fmt))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    _configure_root_logger()
    return logging.getLogger(name)
