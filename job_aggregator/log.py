"""Logging setup for the aggregator: stderr console plus an optional daily file.

stdout is left to the CLI, which prints JSON there.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

_DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"

# httpx/httpcore log every request at INFO; adapters log their own summaries.
_NOISY_LOGGERS = ("httpx", "httpcore")

_console: logging.Handler | None = None


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _level(name: str | None) -> int:
    return getattr(logging, (name or "INFO").upper(), logging.INFO)


def configure_logging(level: str | None = None) -> None:
    """Install handlers once; later calls only change the console level.

    ``level`` falls back to ``LOG_LEVEL``. ``LOG_TO_FILE`` (default on) adds
    ``logs/aggregator_YYYY-MM-DD.log`` at DEBUG; ``LOG_DIR`` moves it.
    """
    global _console
    resolved = _level(level or os.environ.get("LOG_LEVEL"))
    root = logging.getLogger()

    if _console is not None:
        if _console in root.handlers:
            root.setLevel(min(root.level, resolved))
            _console.setLevel(resolved)
        return

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FMT)
    _console = logging.StreamHandler(sys.stderr)
    _console.setLevel(resolved)
    _console.setFormatter(formatter)

    # the host application already owns the root logger
    if root.handlers:
        return

    root.setLevel(resolved)
    root.addHandler(_console)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not _env_flag("LOG_TO_FILE", True):
        return
    log_dir = Path(os.environ.get("LOG_DIR") or _DEFAULT_LOG_DIR)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(
            log_dir / f"aggregator_{datetime.now().strftime('%Y-%m-%d')}.log", encoding="utf-8"
        )
    except OSError as exc:
        root.warning("File logging disabled, cannot write to %s: %s", log_dir, exc)
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    root.setLevel(logging.DEBUG)
    root.addHandler(fh)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger, configuring handlers on first use."""
    if _console is None:
        configure_logging()
    return logging.getLogger(name)
