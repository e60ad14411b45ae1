"""Lightweight logging helpers with UTC timestamps."""

from __future__ import annotations

import logging
import os
import time

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
_HANDLER_NAME = "alphawatch-root-handler"

# Set while the terminal dashboard owns the console
_console_suppressed = False
_saved_handlers: list[logging.Handler] = []
_file_handler: logging.FileHandler | None = None


def suppress_console_logging(suppress: bool = True, log_file: str | None = None):
    """Detach console handlers while a full-screen view is live.

    When ``log_file`` is given, records keep flowing to that file instead.
    """
    global _console_suppressed, _saved_handlers, _file_handler
    _console_suppressed = suppress
    root = logging.getLogger()

    if suppress:
        _saved_handlers = []
        for handler in root.handlers[:]:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                _saved_handlers.append(handler)
                root.removeHandler(handler)
        if log_file and _file_handler is None:
            _file_handler = logging.FileHandler(log_file)
            formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
            formatter.converter = time.gmtime
            _file_handler.setFormatter(formatter)
            root.addHandler(_file_handler)
    else:
        if _file_handler is not None:
            root.removeHandler(_file_handler)
            _file_handler.close()
            _file_handler = None
        for handler in _saved_handlers:
            root.addHandler(handler)
        _saved_handlers = []


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        env_level = os.getenv("LOG_LEVEL", "INFO").upper()
        return getattr(logging, env_level, logging.INFO)
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return int(level)


def setup_logging(level: str | int | None = None) -> logging.Logger:
    """Configure a single root handler if one has not been attached."""
    root = logging.getLogger()
    resolved_level = _resolve_level(level)

    has_handler = any(getattr(h, "name", "") == _HANDLER_NAME for h in root.handlers)
    if not has_handler and not _console_suppressed:
        handler = logging.StreamHandler()
        handler.name = _HANDLER_NAME
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        formatter.converter = time.gmtime  # Force UTC timestamps
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.setLevel(resolved_level)
    for handler in root.handlers:
        if getattr(handler, "name", "") == _HANDLER_NAME:
            handler.setLevel(resolved_level)

    return root


def get_logger(name: str) -> logging.Logger:
    """Return a logger configured with the shared format."""
    setup_logging()
    return logging.getLogger(name)
