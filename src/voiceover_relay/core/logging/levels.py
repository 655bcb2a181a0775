"""
Log Level Definitions and Mapping.

voiceover-relay uses numeric levels 1-4 instead of Python's named levels:
    1 = MINIMAL  - Startup, configuration errors, 5xx responses
    2 = NORMAL   - One line per relay request and per upstream call (default)
    3 = VERBOSE  - Payload shape, upstream timing
    4 = DEBUG    - Full request bodies (never the API key)

Mapping to Python Levels:
    MINIMAL (1) -> logging.WARNING (30)
    NORMAL (2)  -> logging.INFO (20)
    VERBOSE (3) -> logging.DEBUG (10)
    DEBUG (4)   -> logging.DEBUG - 5 (5, TRACE)
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Numeric log levels, higher is more verbose."""
    MINIMAL = 1
    NORMAL = 2
    VERBOSE = 3
    DEBUG = 4


LEVEL_MAP = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: logging.DEBUG - 5,
}

_NAME_TO_LEVEL = {
    "MINIMAL": LogLevel.MINIMAL,
    "NORMAL": LogLevel.NORMAL,
    "VERBOSE": LogLevel.VERBOSE,
    "DEBUG": LogLevel.DEBUG,
    "TRACE": LogLevel.DEBUG,
    # Python level names
    "CRITICAL": LogLevel.MINIMAL,
    "ERROR": LogLevel.MINIMAL,
    "WARNING": LogLevel.MINIMAL,
    "WARN": LogLevel.MINIMAL,
    "INFO": LogLevel.NORMAL,
}


def coerce_level(value: Any) -> LogLevel:
    """
    Convert an int, level name or numeric string to a LogLevel.

    Integers 1-4 are taken as-is; larger integers are read as Python
    logging levels (WARNING -> MINIMAL, INFO -> NORMAL, below -> DEBUG).
    Anything unparseable becomes NORMAL.

    Examples:
        >>> coerce_level("verbose")
        <LogLevel.VERBOSE: 3>
        >>> coerce_level(logging.WARNING)
        <LogLevel.MINIMAL: 1>
    """
    if isinstance(value, LogLevel):
        return value

    if isinstance(value, int):
        if 1 <= value <= 4:
            return LogLevel(value)
        if value >= logging.WARNING:
            return LogLevel.MINIMAL
        if value >= logging.INFO:
            return LogLevel.NORMAL
        return LogLevel.DEBUG

    if isinstance(value, str):
        text = value.strip().upper()
        if text.isdigit():
            return coerce_level(int(text))
        return _NAME_TO_LEVEL.get(text, LogLevel.NORMAL)

    return LogLevel.NORMAL
