"""
Logging configuration — central setup for the CLI and library callers.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    --debug / --verbose / --quiet  >  SHELFPAD_LOG_LEVEL  >  WARNING

At INFO (verbose) the engine prints one line per package outcome and
per stub.  At WARNING only warnings, the final summary, and fatal
errors reach the terminal.

Optional file output via SHELFPAD_LOG_FILE / SHELFPAD_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import sys

import click

# ── Format strings ──────────────────────────────────────────────

# WARNING level: bare message, severity prefix added by the formatter
_FMT_MINIMAL = "%(message)s"

# INFO level: one line per outcome, no timestamps
_FMT_VERBOSE = "%(message)s"

# DEBUG level: full diagnostic with file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output: always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_LEVEL_STYLES = {
    logging.WARNING: ("! warning:", "yellow"),
    logging.ERROR: ("error:", "red"),
    logging.CRITICAL: ("error:", "red"),
}


class ConsoleFormatter(logging.Formatter):
    """Prefix warnings and errors with a coloured severity tag."""

    def __init__(self, fmt: str, datefmt: str | None = None, color: bool = False) -> None:
        super().__init__(fmt, datefmt=datefmt)
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        style = _LEVEL_STYLES.get(record.levelno)
        if style is None:
            return message
        tag, fg = style
        if self.color:
            tag = click.style(tag, fg=fg, bold=True)
        return f"{tag} {message}"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
    """
    numeric_level = _parse_level(level)

    # ── Console handler (stderr) ────────────────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, None
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(ConsoleFormatter(fmt, datefmt=datefmt, color=sys.stderr.isatty()))

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    # Effective root level = minimum of console and file levels
    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
