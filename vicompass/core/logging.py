from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "vicompass"
LOG_FILE = "vicompass.log"

# cues fire on timer threads, so the thread name is part of every line
_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)s | %(threadName)s | %(name)s | %(message)s"


def _resolve_level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def init_logging(log_dir: str | None = None, level: str | int = "INFO", *, console: bool = True) -> logging.Logger:
    """Configure the ``vicompass`` logger tree.

    The first call attaches a rotating file handler (``LOG_DIR``, default
    ./logs) and, unless ``console`` is false, a stderr handler. Later calls
    keep those handlers and only apply the new level.
    """
    logger = logging.getLogger(LOGGER_NAME)
    level = _resolve_level(level)
    if logger.handlers:
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    log_dir = log_dir or os.environ.get("LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, LOG_FILE)

    fmt = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers: list[logging.Handler] = [
        RotatingFileHandler(log_path, maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(fmt)
        handler.setLevel(level)
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False
    logger.debug("logging ready | level=%s file=%s", logging.getLevelName(level), log_path)
    return logger
