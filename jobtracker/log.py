"""Logging for the tracker: stderr console, daily DEBUG file, quiet HTTP libraries."""
from __future__ import annotations

import logging
import os
import sys
from datetime import date
from pathlib import Path

_FILE_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(name)s: %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"

# Request-level chatter from the Groq client and page fetches.
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")

_console: logging.Handler | None = None


def log_dir() -> Path:
    home = os.environ.get("TRACKER_HOME")
    return (Path(home) if home else Path(__file__).resolve().parent.parent) / "logs"


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; configures root handlers on first call."""
    if _console is None:
        _configure()
    return logging.getLogger(name)


def set_verbose(enabled: bool = True) -> None:
    """Switch console output to DEBUG (``track -v``) or back to ``LOG_LEVEL``."""
    if _console is None:
        _configure()
    level = logging.DEBUG if enabled else _env_level()
    logging.getLogger().setLevel(level)
    _console.setLevel(level)


def _env_level() -> int:
    return getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)


def _configure() -> None:
    global _console
    level = _env_level()
    root = logging.getLogger()
    root.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _console = logging.StreamHandler(sys.stderr)
    _console.setLevel(level)
    _console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    if root.handlers:
        # Host (pytest, an embedding app) already owns the root handlers.
        return
    root.addHandler(_console)

    if os.environ.get("TRACKER_NO_LOG_FILE"):
        return
    try:
        directory = log_dir()
        directory.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(directory / f"tracker_{date.today():%Y-%m-%d}.log", encoding="utf-8")
    except OSError:
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FMT))
    root.addHandler(fh)
