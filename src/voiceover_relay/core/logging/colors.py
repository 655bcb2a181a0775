"""
ANSI colors for the console formatter.

Disabled when stdout is not a TTY, when NO_COLOR is set
(https://no-color.org/), or when VOICEOVER_NO_COLOR=1.
"""
from __future__ import annotations

import os
import sys


class Colors:
    RESET = "\033[0m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GRAY = "\033[90m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


_TAG_COLORS = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "INFO": Colors.BRIGHT_CYAN,
    "WARN": Colors.BRIGHT_YELLOW,
    "ERROR": Colors.BRIGHT_RED,
    "FAIL": Colors.BRIGHT_RED,
    "DEBUG": Colors.GRAY,
}


def supports_color() -> bool:
    if os.getenv("VOICEOVER_NO_COLOR", "0") == "1" or os.getenv("NO_COLOR"):
        return False
    if not getattr(sys.stdout, "isatty", None) or not sys.stdout.isatty():
        return False

    if sys.platform == "win32":
        # Windows 10+ needs virtual terminal processing switched on
        try:
            import ctypes
            kernel32 = ctypes.windll.kernel32
            kernel32.SetConsoleMode(kernel32.GetStdHandle(-11), 7)
        except (AttributeError, OSError):
            return False
    return True


def get_tag_color(tag: str) -> str:
    return _TAG_COLORS.get(tag.upper(), Colors.WHITE)


def get_status_color(status: int) -> str:
    """2xx green, 4xx yellow, 5xx red."""
    if status < 300:
        return Colors.GREEN
    if status < 500:
        return Colors.YELLOW
    return Colors.RED
