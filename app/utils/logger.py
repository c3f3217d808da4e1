# app/utils/logger.py
"""
Logging setup shared by every module: console plus a rotating parking.log.
The root logger is configured once, on the first get_logger() call.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from app.config import settings

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Chatty libraries stay at WARNING unless LOG_LEVEL is DEBUG
_NOISY = ("sqlalchemy.engine", "paho", "uvicorn.access", "httpx")

_configured = False


def log_dir() -> str:
    return settings.LOG_DIR or os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs"
    )


def _file_handler(level: str, fmt: logging.Formatter) -> RotatingFileHandler:
    directory = log_dir()
    os.makedirs(directory, exist_ok=True)
    handler = RotatingFileHandler(
        filename=os.path.join(directory, "parking.log"),
        maxBytes=5 * 1024 * 1024,     # 10 files × 5MB
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
    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(console)
    root.addHandler(_file_handler(level, fmt))

    if level != "DEBUG":
        for name in _NOISY:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Call this at the top of every module."""
    _configure_root_logger()
    return logging.getLogger(name)
