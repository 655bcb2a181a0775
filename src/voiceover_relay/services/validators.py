"""
Input Validation for the Relay and the Client.

Client-side (before any network call):
    - validate_script: trimmed text must be non-empty and at least
      ``min_chars`` long. No upper bound here.
    - validate_voice: a voice must be selected.

Relay-side (inbound request body):
    - validate_text_length: upper bound on text sent upstream
    - coerce_speed: falsy -> 1.0, otherwise a finite positive number

All functions raise ValidationError carrying a human message (shown to the
user verbatim) and a machine code:
    EMPTY_INPUT, TOO_SHORT, VOICE_REQUIRED, TEXT_TOO_LONG, INVALID_SPEED
"""
from __future__ import annotations

import math
from typing import Any

from voiceover_relay.core.config import Defaults


class ValidationError(Exception):
    """
    Raised when input validation fails.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code.
    """

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


def validate_script(raw_text: str | None, min_chars: int = Defaults.LIMITS_MIN_TEXT_CHARS) -> str:
    """
    Trim and validate script text typed by the user.

    Returns:
        The trimmed text.

    Raises:
        ValidationError: EMPTY_INPUT if nothing is left after trimming,
            TOO_SHORT if fewer than ``min_chars`` characters remain.
    """
    text = (raw_text or "").strip()

    if not text:
        raise ValidationError("Please enter some text for your script", "EMPTY_INPUT")

    if len(text) < min_chars:
        raise ValidationError("Script is too short. Please add more text.", "TOO_SHORT")

    return text


def validate_voice(voice: str | None) -> str:
    """Reject an empty voice selection."""
    if not voice or not voice.strip():
        raise ValidationError("Please select a voice", "VOICE_REQUIRED")
    return voice.strip()


def validate_text_length(text: str, max_chars: int = Defaults.LIMITS_MAX_TEXT_CHARS) -> str:
    """
    Enforce the relay's upper bound on text forwarded upstream.

    Raises:
        ValidationError: TEXT_TOO_LONG if ``len(text) > max_chars``.
    """
    if len(text) > max_chars:
        raise ValidationError(
            f"Text exceeds maximum length ({len(text)} > {max_chars})",
            "TEXT_TOO_LONG",
        )
    return text


def coerce_speed(speed: Any) -> float:
    """
    Normalize a speaking rate.

    Falsy values (None, 0, "") mean "default" and become 1.0. Numeric
    strings are accepted since form values arrive as text. The provider
    owns the upper and lower bounds; a rate it rejects comes back as its
    own error.

    Raises:
        ValidationError: INVALID_SPEED if not a finite positive number.
    """
    if not speed:
        return Defaults.DEFAULT_SPEED

    invalid = ValidationError("Invalid speed: must be a positive number", "INVALID_SPEED")

    if isinstance(speed, bool):
        raise invalid
    try:
        value = float(speed)
    except (TypeError, ValueError):
        raise invalid

    if not math.isfinite(value) or value <= 0:
        raise invalid
    return value
