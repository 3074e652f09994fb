################################################################################
# TAR-DOCKA
#
# @file:        logging.py
# @module:      tar_docka.helpers.logging
# @description: Timestamped console/file logging with optional structured context.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Every line carries a timestamp; warnings/errors get a WARNING:/ERROR: prefix
# - Context passed via extra={...} is appended in DEBUG mode
################################################################################

"""
Logging helpers for Tar-Docka.

All modules obtain their logger through :func:`get_logger`; the CLI configures
handlers once through :data:`log_manager`.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

from .constants import LOG_FORMAT, LOG_DATE_FORMAT

ROOT_LOGGER_NAME = "tar_docka"

# Attribute names every LogRecord has; everything else came in via extra=
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    DIM = "\033[2m"

    LEVELS = {
        logging.DEBUG: DIM,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: RED,
    }


class StructuredFormatter(logging.Formatter):
    """
    Formatter producing ``YYYY-MM-DD HH:MM:SS - [LEVEL: ]message [key=value ...]``.

    Args:
        use_colors: Colorize warnings and errors
        include_context: Append fields passed via ``extra=``
    """

    def __init__(self, use_colors: bool = False, include_context: bool = False):
        super().__init__(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        self.use_colors = use_colors
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        original = record.msg
        prefix = ""
        if record.levelno >= logging.ERROR:
            prefix = "ERROR: "
        elif record.levelno >= logging.WARNING:
            prefix = "WARNING: "
        elif record.levelno <= logging.DEBUG:
            prefix = "DEBUG: "

        record.msg = f"{prefix}{record.msg}"
        try:
            line = super().format(record)
        finally:
            record.msg = original

        if self.include_context:
            context = {
                k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS
            }
            if context:
                line += " [" + " ".join(f"{k}={v}" for k, v in sorted(context.items())) + "]"

        if self.use_colors:
            color = Colors.LEVELS.get(record.levelno)
            if color:
                line = f"{color}{line}{Colors.RESET}"
        return line


class LogManager:
    """Configures the ``tar_docka`` logger hierarchy once per process."""

    def __init__(self):
        self.level = logging.INFO
        self._handlers = []

    def configure(
        self,
        level: Union[str, int] = "INFO",
        log_file: Optional[Union[str, Path]] = None,
        use_colors: Optional[bool] = None,
    ) -> None:
        """
        (Re)configure handlers.

        Args:
            level: Level name or number
            log_file: Optional file receiving the same lines (without colors)
            use_colors: Force colors on/off; default is auto-detect on stderr
        """
        if isinstance(level, str):
            numeric = logging.getLevelName(level.upper())
            if not isinstance(numeric, int):
                raise ValueError(f"Unknown log level: {level}")
            level = numeric
        self.level = level

        root = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in self._handlers:
            root.removeHandler(handler)
            handler.close()
        self._handlers = []

        if use_colors is None:
            use_colors = hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
        debug = level <= logging.DEBUG

        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(StructuredFormatter(use_colors=use_colors, include_context=debug))
        self._handlers.append(console)

        if log_file:
            path = Path(log_file).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, encoding="utf-8")
            file_handler.setFormatter(StructuredFormatter(include_context=debug))
            self._handlers.append(file_handler)

        for handler in self._handlers:
            root.addHandler(handler)
        root.setLevel(level)
        root.propagate = False


log_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Return a logger below the ``tar_docka`` hierarchy."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def setup_logging(verbose: bool = False, log_file: Optional[Union[str, Path]] = None) -> None:
    """Shortcut used by scripts: INFO, or DEBUG when verbose."""
    log_manager.configure(level="DEBUG" if verbose else "INFO", log_file=log_file)
