"""
Configuration Management for voiceover-relay.

Configuration Hierarchy (highest priority first):
    1. Environment variables (VOICEOVER_UPSTREAM_URL, VOICEOVER_RELAY_URL, ...)
    2. YAML config file (config/settings.yaml, or $VOICEOVER_SETTINGS)
    3. Defaults class values

The synthesis provider credential is deliberately NOT part of the settings
file. It is read from the process environment (variable name configurable
via ``upstream.api_key_env``) at call time, so a deployment can rotate it
without restarting the relay.

Example settings.yaml:
    upstream:
      base_url: https://texttospeech.googleapis.com
      timeout_s: 30

    limits:
      max_text_chars: 5000

    logging:
      level: 2
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml


class ConfigValidationError(Exception):
    """Raised when a configuration value is out of bounds or of the wrong type."""
    pass


class Defaults:
    """Centralized default configuration values."""

    # ─────────────────────────────────────────────────────────────────────────
    # Upstream provider (Google Cloud Text-to-Speech)
    # ─────────────────────────────────────────────────────────────────────────
    UPSTREAM_BASE_URL = "https://texttospeech.googleapis.com"
    UPSTREAM_SYNTHESIZE_PATH = "/v1/text:synthesize"
    UPSTREAM_TIMEOUT_S = 30.0
    UPSTREAM_API_KEY_ENV = "GOOGLE_CLOUD_API_KEY"

    # ─────────────────────────────────────────────────────────────────────────
    # Request limits
    # ─────────────────────────────────────────────────────────────────────────
    LIMITS_MIN_TEXT_CHARS = 10          # Client-side minimum after trimming
    LIMITS_MAX_TEXT_CHARS = 5000        # Google's per-request input cap
    DEFAULT_SPEED = 1.0

    # ─────────────────────────────────────────────────────────────────────────
    # Client
    # ─────────────────────────────────────────────────────────────────────────
    CLIENT_BASE_URL = "http://localhost:8000"
    CLIENT_DEFAULT_VOICE = "en-US-Neural2-A"
    CLIENT_TIMEOUT_S = 60.0

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG
    LOGGING_TEXT_PREVIEW_CHARS = 60


@dataclass
class UpstreamConfig:
    """Where and how the relay reaches the synthesis provider."""
    base_url: str = Defaults.UPSTREAM_BASE_URL
    synthesize_path: str = Defaults.UPSTREAM_SYNTHESIZE_PATH
    timeout_s: float = Defaults.UPSTREAM_TIMEOUT_S
    api_key_env: str = Defaults.UPSTREAM_API_KEY_ENV

    @property
    def synthesize_url(self) -> str:
        return self.base_url.rstrip("/") + self.synthesize_path


@dataclass
class LimitsConfig:
    """Bounds applied to inbound synthesis requests."""
    min_text_chars: int = Defaults.LIMITS_MIN_TEXT_CHARS
    max_text_chars: int = Defaults.LIMITS_MAX_TEXT_CHARS


@dataclass
class ClientConfig:
    """Defaults for the command-line client."""
    base_url: str = Defaults.CLIENT_BASE_URL
    default_voice: str = Defaults.CLIENT_DEFAULT_VOICE
    timeout_s: float = Defaults.CLIENT_TIMEOUT_S


@dataclass
class LoggingConfig:
    """Log level and request preview length."""
    level: int = Defaults.LOGGING_LEVEL
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS


@dataclass
class RelayConfig:
    """
    Validated configuration for the relay and client.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = RelayConfig.from_settings(settings)
        print(config.upstream.timeout_s)
    """
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RelayConfig":
        """
        Build a RelayConfig from raw settings, applying defaults and env overrides.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        upstream_raw = raw.get("upstream", {}) or {}
        timeout_env = os.getenv("VOICEOVER_UPSTREAM_TIMEOUT")
        try:
            upstream = UpstreamConfig(
                base_url=str(os.getenv("VOICEOVER_UPSTREAM_URL")
                             or upstream_raw.get("base_url", Defaults.UPSTREAM_BASE_URL)),
                synthesize_path=str(upstream_raw.get("synthesize_path", Defaults.UPSTREAM_SYNTHESIZE_PATH)),
                timeout_s=float(timeout_env or upstream_raw.get("timeout_s", Defaults.UPSTREAM_TIMEOUT_S)),
                api_key_env=str(upstream_raw.get("api_key_env", Defaults.UPSTREAM_API_KEY_ENV)),
            )
        except ValueError as e:
            raise ConfigValidationError(f"upstream: {e}")
        cls._validate_url("upstream.base_url", upstream.base_url)
        cls._validate_positive("upstream.timeout_s", upstream.timeout_s)
        if not upstream.api_key_env:
            raise ConfigValidationError("upstream.api_key_env must not be empty")

        limits_raw = raw.get("limits", {}) or {}
        limits = LimitsConfig(
            min_text_chars=int(limits_raw.get("min_text_chars", Defaults.LIMITS_MIN_TEXT_CHARS)),
            max_text_chars=int(limits_raw.get("max_text_chars", Defaults.LIMITS_MAX_TEXT_CHARS)),
        )
        cls._validate_positive("limits.min_text_chars", limits.min_text_chars)
        cls._validate_positive("limits.max_text_chars", limits.max_text_chars)
        if limits.max_text_chars < limits.min_text_chars:
            raise ConfigValidationError(
                f"limits.max_text_chars ({limits.max_text_chars}) must be >= "
                f"limits.min_text_chars ({limits.min_text_chars})"
            )

        client_raw = raw.get("client", {}) or {}
        client = ClientConfig(
            base_url=str(os.getenv("VOICEOVER_RELAY_URL")
                         or client_raw.get("base_url", Defaults.CLIENT_BASE_URL)),
            default_voice=str(client_raw.get("default_voice", Defaults.CLIENT_DEFAULT_VOICE)),
            timeout_s=float(client_raw.get("timeout_s", Defaults.CLIENT_TIMEOUT_S)),
        )
        cls._validate_url("client.base_url", client.base_url)
        cls._validate_positive("client.timeout_s", client.timeout_s)

        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)
        if isinstance(log_level_raw, str):
            from voiceover_relay.core.logging.levels import coerce_level
            log_level = int(coerce_level(log_level_raw))
        else:
            log_level = int(log_level_raw)
        logging_cfg = LoggingConfig(
            level=log_level,
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
        )
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)

        return cls(upstream=upstream, limits=limits, client=client, logging=logging_cfg)

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")

    @staticmethod
    def _validate_url(name: str, value: str) -> None:
        if not value.startswith(("http://", "https://")):
            raise ConfigValidationError(f"{name} must be an http(s) URL, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    Use get_relay_config() for the validated, typed view.
    """
    raw: Dict[str, Any]

    def get_relay_config(self) -> RelayConfig:
        """
        Validated RelayConfig for these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return RelayConfig.from_settings(self)


def load_settings(path: str = "config/settings.yaml", missing_ok: bool = False) -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file.
        missing_ok: Return empty settings (all defaults) instead of raising
            when the file does not exist.

    Raises:
        FileNotFoundError: If the file doesn't exist and missing_ok is False.
        ConfigValidationError: If the file is not a YAML mapping.
    """
    p = Path(path)
    if not p.exists():
        if missing_ok:
            return Settings(raw={})
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigValidationError(f"settings file must contain a mapping: {p}")

    return Settings(raw=raw)
