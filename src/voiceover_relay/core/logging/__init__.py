"""
voiceover-relay Structured Logging.

Numeric levels (1-4), colored console output, optional JSONL file output
and request id correlation. Every relay error is reported here before it
is returned to the caller.

Configuration:
    export VOICEOVER_LOG_LEVEL=3   # VERBOSE
    export VOICEOVER_LOG_DIR=logs  # also write logs/voiceover-relay.jsonl

    or in settings.yaml:
        logging:
          level: 2
          log_dir: logs

Usage:
    from voiceover_relay.core.logging import get_logger, info, fail

    log = get_logger("voiceover.relay")
    info(log, "relay_request", chars=120, voice="en-US-Neural2-A")
    fail(log, "upstream_failed", status=403, error="quota exceeded")

Fields named ``status`` and ``seconds`` are rendered specially by the
formatters; all other keyword fields are appended as key=value pairs.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from .levels import LEVEL_MAP, LogLevel, coerce_level
from .colors import supports_color
from .context import (
    get_level,
    get_request_id,
    is_configured,
    read_logging_config,
    set_configured,
    set_level,
    set_request_id,
)
from .formatters import ColoredConsoleFormatter, JsonlFormatter

# Checked by the formatters at format time; tests may flip it.
_USE_COLORS = supports_color()

# HTTP client libraries log every request line at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install console (and optionally JSONL file) handlers on the root logger.

    Args:
        level: Log level (1-4, level name, or LogLevel). Falls back to
            the resolved logging config, then NORMAL.
        force: Reconfigure even if already configured.
    """
    global _USE_COLORS

    if is_configured() and not force:
        return

    _USE_COLORS = supports_color()

    log_config = read_logging_config()

    current_level = coerce_level(level or log_config.get("level", LogLevel.NORMAL))
    set_level(current_level)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG - 10)
    root.handlers = []

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(LEVEL_MAP.get(current_level, logging.INFO))
    console.setFormatter(ColoredConsoleFormatter())
    root.addHandler(console)

    log_dir = log_config.get("log_dir")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            Path(log_dir) / str(log_config.get("jsonl_file", "voiceover-relay.jsonl")),
            maxBytes=int(log_config.get("rotate_max_bytes", 10 * 1024 * 1024)),
            backupCount=int(log_config.get("rotate_backup_count", 5)),
            encoding="utf-8",
            delay=True,
        )
        file_handler.setLevel(logging.DEBUG - 10)
        file_handler.setFormatter(JsonlFormatter())
        root.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    set_configured(True)


def _log(
    logger: logging.Logger,
    level: int,
    tag: str,
    msg: str,
    numeric_level: int = 2,
    **fields: Any
) -> None:
    if numeric_level > get_level():
        return

    status = fields.pop("status", None)
    seconds = fields.pop("seconds", None)
    logger.log(
        level,
        msg,
        extra={
            "tag": tag,
            "request_id": get_request_id(),
            "status": status,
            "seconds": seconds,
            "extra_data": fields or None,
            "numeric_level": numeric_level,
        },
    )


def get_logger(name: str = "voiceover") -> logging.Logger:
    """Get a logger instance, configuring logging if needed."""
    configure_logging()
    return logging.getLogger(name)


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log an info message (level 2 = NORMAL)."""
    _log(logger, logging.INFO, "INFO", msg, numeric_level=2, **fields)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log a warning message (level 2 = NORMAL)."""
    _log(logger, logging.WARNING, "WARN", msg, numeric_level=2, **fields)


def error(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log an error message (level 1 = MINIMAL)."""
    _log(logger, logging.ERROR, "ERROR", msg, numeric_level=1, **fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log a success message (level 2 = NORMAL)."""
    _log(logger, logging.INFO, "SUCCESS", msg, numeric_level=2, **fields)


def fail(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log a failure message (level 1 = MINIMAL)."""
    _log(logger, logging.ERROR, "FAIL", msg, numeric_level=1, **fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log a verbose message (level 3 = VERBOSE)."""
    _log(logger, logging.DEBUG, "INFO", msg, numeric_level=3, **fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log a debug message (level 4 = DEBUG)."""
    _log(logger, logging.DEBUG, "DEBUG", msg, numeric_level=4, **fields)


__all__ = [
    "LogLevel",
    "LEVEL_MAP",
    "coerce_level",
    "get_request_id",
    "set_request_id",
    "get_level",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]
