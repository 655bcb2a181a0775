"""
Per-request and process-wide logging state.

Each relay request runs in its own asyncio task, so the request id is a
ContextVar. The active level and the "configured" flag are process-wide.
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_current_level: LogLevel = LogLevel.NORMAL

# env var -> key in the ``logging`` settings section
_ENV_OVERRIDES = (
    ("VOICEOVER_LOG_LEVEL", "level"),
    ("VOICEOVER_LOG_DIR", "log_dir"),
    ("VOICEOVER_JSONL_FILE", "jsonl_file"),
)
_ENV_INT_OVERRIDES = (
    ("VOICEOVER_LOG_ROTATE_BYTES", "rotate_max_bytes"),
    ("VOICEOVER_LOG_ROTATE_BACKUP", "rotate_backup_count"),
)


def get_request_id() -> str:
    """Request id bound to the current task, "-" outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def read_logging_config() -> Dict[str, Any]:
    """
    The ``logging`` section of the settings file with env overrides applied.

    The settings file (VOICEOVER_SETTINGS, default config/settings.yaml) is
    optional here. Environment variables win over the file:

        VOICEOVER_LOG_LEVEL          1-4 or a level name
        VOICEOVER_LOG_DIR            enables the JSONL file handler
        VOICEOVER_JSONL_FILE         file name inside the log dir
        VOICEOVER_LOG_ROTATE_BYTES   rotate size
        VOICEOVER_LOG_ROTATE_BACKUP  rotated files kept
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("VOICEOVER_SETTINGS", "config/settings.yaml")
    if os.path.exists(settings_path):
        from voiceover_relay.core.config import load_settings
        cfg.update(load_settings(settings_path).raw.get("logging", {}) or {})

    for env_name, key in _ENV_OVERRIDES:
        if os.getenv(env_name):
            cfg[key] = os.environ[env_name]
    for env_name, key in _ENV_INT_OVERRIDES:
        raw = os.getenv(env_name)
        if raw and raw.isdigit():
            cfg[key] = int(raw)

    return cfg
