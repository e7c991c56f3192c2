# contextkeeper/logger.py
"""
contextkeeper.logger
====================
File: <home>/logs/contextkeeper.log
Rotates at 1 MB × 5 backups. Never writes to stdout: in server mode stdout
carries the JSON-RPC stream.
"""

from __future__ import annotations

import logging
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict

from contextkeeper import env

# ─────────────────────────── internals
_LOCK = threading.RLock()
_LOGGERS: Dict[str, logging.Logger] = {}

_MAX_BYTES = 1_000_000
_BACKUP_COUNT = 5
_LOG_NAME = "contextkeeper.log"

# ─────────────────────────── helpers


def _log_path() -> Path:
    return env.get_logs_root() / _LOG_NAME


def _make_handler() -> RotatingFileHandler:
    h = RotatingFileHandler(
        _log_path(),
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
        delay=True,  # open on first emit
    )
    h.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return h


# ─────────────────────────── public API
def get_logger(name: str = "contextkeeper") -> logging.Logger:
    """Thread-safe, idempotent logger getter."""
    with _LOCK:
        if name in _LOGGERS:
            return _LOGGERS[name]

        lg = logging.getLogger(name)
        lg.setLevel(logging.DEBUG)
        lg.propagate = False
        if not lg.handlers:
            lg.addHandler(_make_handler())

        _LOGGERS[name] = lg
        return lg
