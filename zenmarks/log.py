from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from rich.logging import RichHandler

CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)sZ %(levelname)s %(name)s %(message)s"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}

# Libraries that log at INFO/DEBUG on every call.
_NOISY_LOGGERS = ("filelock", "tldextract", "urllib3")


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    no_color: bool = False
    log_file: Optional[str] = None


class UtcFormatter(logging.Formatter):
    """Render timestamps as ISO-8601 in UTC."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat(timespec="seconds")


def parse_level(name: str) -> int:
    """Level number for ``name``; accepts ``WARN`` and ``FATAL``. Unknown names raise ValueError."""
    key = (name or "").strip().upper()
    key = _LEVEL_ALIASES.get(key, key)
    level = logging.getLevelName(key)
    if not isinstance(level, int):
        raise ValueError(f"unknown log level: {name!r}")
    return level


def use_color(cfg: LogConfig) -> bool:
    if cfg.no_color or os.getenv("NO_COLOR") is not None:
        return False
    return sys.stderr.isatty()


def _console_handler(cfg: LogConfig) -> logging.Handler:
    if use_color(cfg):
        handler: logging.Handler = RichHandler(
            rich_tracebacks=True, show_time=False, show_level=True, show_path=False
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding="utf-8")
    handler.setFormatter(UtcFormatter(FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    return handler


def setup_logging(cfg: LogConfig) -> logging.Logger:
    """Configure the root logger: console on stderr, plus a rotating file when asked.

    Replaces any handlers from an earlier call, so it is safe to call twice.
    """
    level = parse_level(cfg.level)
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    handlers: List[logging.Handler] = [_console_handler(cfg)]
    if cfg.log_file:
        handlers.append(_file_handler(Path(cfg.log_file).expanduser()))
    for h in handlers:
        h.setLevel(level)
        root.addHandler(h)

    quiet = max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)

    root.debug("Logging configured (level=%s, file=%s)", logging.getLevelName(level), cfg.log_file or "-")
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
