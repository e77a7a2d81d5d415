"""
Sprig logging setup.

Console output is human-readable and tagged with the emitting component.
Optionally, every record is also written as one JSON object per line to a
rotating file under the configured log directory, so reload failures and
dispatch errors can be inspected after the fact.

Script output from ``puts``/``log`` arrives on the ``sprig.script`` logger.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

ROOT_LOGGER = "sprig"
LOG_FILE_NAME = "sprig.log"

# =============================================================================
# Terminal Colors (respects NO_COLOR)
# =============================================================================

_NO_COLOR = bool(os.environ.get("NO_COLOR")) or not sys.stdout.isatty()


def _ansi(code: str) -> str:
    return "" if _NO_COLOR else f"\033[{code}m"


class Colors:
    """ANSI escapes for log output; all empty under NO_COLOR or without a tty."""

    RESET = _ansi("0")
    DIM = _ansi("2")

    DEBUG = _ansi("36")
    INFO = _ansi("32")
    WARNING = _ansi("33")
    ERROR = _ansi("31")
    CRITICAL = _ansi("35")

    # Component tags
    RUNTIME = _ansi("34")
    SCRIPT = _ansi("36")
    RELOAD = _ansi("35")


# Colors for components whose loggers come from plain logging.getLogger
_COMPONENT_COLORS = {"SCRIPT": Colors.SCRIPT}


def _component(record: logging.LogRecord) -> str:
    component = getattr(record, "component", None)
    if component:
        return str(component)
    # sprig.runtime.pipeline -> PIPELINE
    return record.name.rsplit(".", 1)[-1].upper()


# =============================================================================
# Formatters
# =============================================================================


class JSONLFormatter(logging.Formatter):
    """
    Formats log records as JSON Lines.

    Example output:
    {"timestamp":"2025-01-15T10:30:45.123+00:00","level":"WARNING","component":"ROUTER","message":"Unknown handler 'missing_handler'","context":{"widget_id":"b1"}}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": _component(record),
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DEBUG,
        logging.INFO: Colors.INFO,
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.CRITICAL,
    }

    def format(self, record: logging.LogRecord) -> str:
        component = _component(record)
        component_color = getattr(record, "component_color", None) or _COMPONENT_COLORS.get(
            component, Colors.RUNTIME
        )
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        if _NO_COLOR:
            prefix = f"[{timestamp}] [{component}]"
        else:
            prefix = (
                f"{Colors.DIM}{timestamp}{Colors.RESET} "
                f"{component_color}[{component}]{Colors.RESET}"
            )

        # Level only for non-INFO messages
        if record.levelno != logging.INFO:
            level_name = record.levelname
            if not _NO_COLOR:
                level_name = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level_name}{Colors.RESET}"
            prefix = f"{prefix} {level_name}:"

        message = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


# =============================================================================
# Logger Setup
# =============================================================================


_loggers: dict[str, logging.Logger] = {}
_log_dir: Path | None = None


def setup_logging(
    level: int | str = logging.INFO,
    log_dir: Path | str | None = None,
    json: bool = False,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the ``sprig`` logger hierarchy.

    Args:
        level: Minimum log level (number or name such as "DEBUG")
        log_dir: Directory for the JSONL log file (required when ``json`` is set)
        json: Also write JSONL records to ``log_dir/sprig.log``
        max_bytes: Max size per log file before rotation
        backup_count: Number of backup files to keep

    Returns:
        The configured root ``sprig`` logger
    """
    global _log_dir

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    root_logger.propagate = False

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ConsoleFormatter())
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    _log_dir = None
    if json:
        if log_dir is None:
            raise ValueError("log_dir is required for JSONL logging")
        _log_dir = Path(log_dir)
        _log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            _log_dir / LOG_FILE_NAME,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONLFormatter())
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)
        root_logger.debug(
            "JSONL logging enabled",
            extra={"context": {"log_file": str(_log_dir / LOG_FILE_NAME)}},
        )

    return root_logger


def get_logger(component: str, color: str = Colors.RUNTIME) -> logging.Logger:
    """
    Get a logger that tags every record with ``component``.

    Args:
        component: Component tag shown in console output (e.g., "RELOAD")
        color: ANSI color code for the component tag
    """
    if component in _loggers:
        return _loggers[component]

    logger = logging.getLogger(f"{ROOT_LOGGER}.{component.lower().replace(' ', '_')}")

    class ComponentFilter(logging.Filter):
        def filter(self, record: logging.LogRecord) -> bool:
            if not hasattr(record, "component"):
                record.component = component
            if not hasattr(record, "component_color"):
                record.component_color = color
            return True

    logger.addFilter(ComponentFilter())
    _loggers[component] = logger
    return logger


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: dict[str, Any] | None = None,
    **kwargs: Any,
) -> None:
    """
    Log a message with structured context data (kept in the JSONL output).
    """
    extra = {"context": {**(context or {}), **kwargs}} if (context or kwargs) else {}
    logger.log(level, message, extra=extra)


def get_log_file() -> Path | None:
    """Path of the JSONL log file, if file logging is enabled."""
    if _log_dir:
        return _log_dir / LOG_FILE_NAME
    return None
