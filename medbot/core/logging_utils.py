# medbot/core/logging_utils.py
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any, Iterable

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s — %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that share our handlers. APScheduler logs every job run at
# INFO ("Running job ..."), which would drown the per-chat events.
LIBRARY_LEVELS = {
    "apscheduler": logging.WARNING,
    "aiogram": logging.WARNING,
}


def _handlers(cfg: Any) -> list[logging.Handler]:
    log_dir = os.path.dirname(cfg.AUDIT_LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    fmt = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    fh = RotatingFileHandler(
        cfg.AUDIT_LOG_FILE, maxBytes=1_000_000, backupCount=10, encoding="utf-8"
    )
    fh.setFormatter(fmt)
    fh.setLevel(logging.DEBUG)

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch.setLevel(logging.INFO)
    return [fh, ch]


def _attach(logger: logging.Logger, level: int, handlers: Iterable[logging.Handler]) -> None:
    logger.setLevel(level)
    logger.propagate = False
    logger.handlers.clear()
    for h in handlers:
        logger.addHandler(h)


def setup_logging(cfg: Any) -> logging.Logger:
    """
    'medbot' tree: every wizard transition, job add/stop and confirmation goes to the
    audit file at DEBUG; the console shows INFO and above.
    APScheduler/aiogram write to the same handlers, but only from WARNING up.
    """
    handlers = _handlers(cfg)
    root = logging.getLogger("medbot")
    _attach(root, logging.DEBUG, handlers)
    for name, level in LIBRARY_LEVELS.items():
        _attach(logging.getLogger(name), level, handlers)
    return root


def kv(**kwargs: Any) -> str:
    """Key=value compact formatting (values repr()'d for clarity)."""
    return " ".join(f"{k}={v!r}" for k, v in kwargs.items())
