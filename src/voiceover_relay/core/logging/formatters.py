"""
Log Formatters for JSON and Console Output.

    JsonlFormatter: one JSON object per line, for log files and aggregators
    ColoredConsoleFormatter: human-readable lines for the terminal

Output Examples:
    JSONL:
        {"ts":"2026-10-18T14:30:05+00:00","level":2,"tag":"SUCCESS","message":"relay_done","request_id":"5f1c0e9a2b7d","status":200,"extra":{"bytes":18432}}

    Console:
        14:30:05 [SUCCESS] (5f1c0e9a2b7d) relay_done status=200 0.412s bytes=18432
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from .colors import Colors, get_status_color, get_tag_color


def _colorize_for_formatter(text: str, color: str) -> str:
    # Read the flag at format time so tests can toggle it on the package.
    import voiceover_relay.core.logging as log_module
    if not getattr(log_module, "_USE_COLORS", False):
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        status = getattr(record, "status", None)
        if status is not None:
            payload["status"] = status

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Format log records for the console.

    Format:
        HH:MM:SS [ TAG ] (rid) message status=NNN 0.123s key=value

    The HTTP status is colored by class and durations by speed
    (green under 0.5s, yellow under 2s, red above).
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            _colorize_for_formatter(ts, Colors.DIM),
            _colorize_for_formatter(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(_colorize_for_formatter(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        status = getattr(record, "status", None)
        if status is not None:
            parts.append(_colorize_for_formatter(f"status={status}", get_status_color(int(status))))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.5:
                time_color = Colors.GREEN
            elif seconds < 2.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(_colorize_for_formatter(f"{seconds:.3f}s", time_color))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(_colorize_for_formatter(f"{k}={v}", Colors.DIM))

        return " ".join(parts)
