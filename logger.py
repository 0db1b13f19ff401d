"""
logger.py
---------
Application-wide logging configuration.

Design Decisions:
    * One application logger ("sqlitedb") is configured once at import time;
      modules obtain children of it via ``get_logger(__name__)``.
    * Console output goes to stderr so stdout stays clean for CLI results.
    * An optional file handler (LOG_FILE) records everything at DEBUG.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

from config import CONFIG, get_log_level

_ROOT_LOGGER_NAME = "sqlitedb"
_CONSOLE_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_configured = False
_console_handler: logging.Handler | None = None


def _configure_root_logger() -> None:
    """One-time setup of the 'sqlitedb' logger and its handlers."""
    global _configured, _console_handler
    if _configured:
        return
    _configured = True

    root = logging.getLogger(_ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG if CONFIG.log_file else get_log_level())

    _console_handler = logging.StreamHandler(sys.stderr)
    _console_handler.setLevel(get_log_level())
    _console_handler.setFormatter(
        logging.Formatter(fmt=_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )
    root.addHandler(_console_handler)

    if CONFIG.log_file:
        log_path = Path(CONFIG.log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                logging.Formatter(fmt=_FILE_FORMAT, datefmt=_DATE_FORMAT)
            )
            root.addHandler(file_handler)
        except OSError as exc:
            root.warning("Could not create log file '%s': %s", log_path, exc)


_configure_root_logger()


def get_logger(name: str) -> logging.Logger:
    """
    Return a child logger scoped to the given name.

    Args:
        name: Typically ``__name__`` of the calling module.

    Returns:
        A :class:`logging.Logger` under the 'sqlitedb' hierarchy.
    """
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")


def set_console_level(level: int) -> None:
    """Raise or lower console verbosity at runtime (used by ``--verbose``)."""
    root = logging.getLogger(_ROOT_LOGGER_NAME)
    if level < root.level:
        root.setLevel(level)
    if _console_handler is not None:
        _console_handler.setLevel(level)
