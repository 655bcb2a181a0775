"""
FastAPI Dependency Injection Providers.

    get_settings()      - loads and caches settings.yaml (defaults if absent)
    get_relay_config()  - validated RelayConfig
    get_relay()         - process-wide SpeechRelay

Tests replace the relay with ``app.dependency_overrides[get_relay]``.
"""
from __future__ import annotations

import os
from functools import lru_cache

from voiceover_relay.core.config import RelayConfig, Settings, load_settings
from voiceover_relay.services.relay_service import SpeechRelay, get_speech_relay


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load settings once per process.

    The path comes from VOICEOVER_SETTINGS (default config/settings.yaml).
    A missing file means built-in defaults.
    """
    return load_settings(os.getenv("VOICEOVER_SETTINGS", "config/settings.yaml"), missing_ok=True)


@lru_cache(maxsize=1)
def get_relay_config() -> RelayConfig:
    return get_settings().get_relay_config()


def get_relay() -> SpeechRelay:
    """The shared relay instance for route handlers."""
    return get_speech_relay(get_relay_config())
