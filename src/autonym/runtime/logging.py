"""
Logging infrastructure for Autonym.

All runtime modules log through the standard library under the ``autonym``
namespace. ``setup_logging`` attaches either a human-readable console
formatter or a JSON Lines formatter (one object per line, with structured
context) and optionally a rotating log file.

Environment:
- AUTONYM_LOG_LEVEL: default level (e.g. DEBUG, INFO)
- AUTONYM_LOG_FORMAT: ``console`` (default) or ``jsonl``
- NO_COLOR: disable ANSI colours on the console
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

ROOT_LOGGER = "autonym"

_NO_COLOR = bool(os.environ.get("NO_COLOR")) or not sys.stdout.isatty()


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "" if _NO_COLOR else "\033[0m"
    DIM = "" if _NO_COLOR else "\033[2m"
    COMPONENT = "" if _NO_COLOR else "\033[35m"

    DEBUG = "" if _NO_COLOR else "\033[36m"
    WARNING = "" if _NO_COLOR else "\033[33m"
    ERROR = "" if _NO_COLOR else "\033[31m"
    CRITICAL = "" if _NO_COLOR else "\033[35m"


# =============================================================================
# Formatters
# =============================================================================


class JSONLFormatter(logging.Formatter):
    """
    Formats log records as JSON Lines.

    Example output:
    {"timestamp":"2026-01-15T10:30:45.123000Z","level":"INFO","component":"lifecycle","message":"Denied post.create at pre_schema"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "component": _component(record),
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
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.CRITICAL,
    }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        component = _component(record)

        prefix = (
            f"{Colors.DIM}{timestamp}{Colors.RESET} "
            f"{Colors.COMPONENT}[{component}]{Colors.RESET}"
        )
        if record.levelno != logging.INFO:
            color = self.LEVEL_COLORS.get(record.levelno, "")
            prefix = f"{prefix} {color}{record.levelname}{Colors.RESET}:"

        message = f"{prefix} {record.getMessage()}"
        context = getattr(record, "context", None)
        if context:
            message = f"{message} {json.dumps(context, default=str)}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def _component(record: logging.LogRecord) -> str:
    component = getattr(record, "component", None)
    if component:
        return str(component)
    return record.name.rsplit(".", 1)[-1]


# =============================================================================
# Logger Setup
# =============================================================================


def setup_logging(
    level: int | str | None = None,
    log_format: str | None = None,
    log_file: Path | str | None = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the ``autonym`` logger.

    Args:
        level: Minimum level; defaults to AUTONYM_LOG_LEVEL or INFO
        log_format: ``console`` or ``jsonl``; defaults to AUTONYM_LOG_FORMAT
        log_file: Optional file that receives JSONL output with rotation
        max_bytes: Max size per log file before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The configured root ``autonym`` logger
    """
    if level is None:
        level = os.environ.get("AUTONYM_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    log_format = (log_format or os.environ.get("AUTONYM_LOG_FORMAT", "console")).lower()

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONLFormatter() if log_format == "jsonl" else ConsoleFormatter())
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(JSONLFormatter())
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    return root_logger


def get_logger(component: str) -> logging.Logger:
    """Get a logger for a component under the ``autonym`` namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{component.lower().replace(' ', '_')}")


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: dict[str, Any] | None = None,
    **kwargs: Any,
) -> None:
    """
    Log a message with structured context data.

    The context ends up as the ``context`` object in JSONL output and as a
    trailing JSON blob on the console.
    """
    extra = {"context": {**(context or {}), **kwargs}} if (context or kwargs) else {}
    logger.log(level, message, extra=extra)
