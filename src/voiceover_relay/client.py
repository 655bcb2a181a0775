"""
Client Request Builder.

Caller-side counterpart of the relay: turns user input into a
SynthesisRequest, calls ``POST /api/generate-speech`` and keeps the
resulting audio for saving.

Generation cycle (GenerationSession.generate):

    Idle → Validating ─fail─→ Idle + ErrorShown
                      └─ok──→ Submitting ─fail─→ Idle + ErrorShown
                                         └─ok──→ Idle + ResultReady

While submitting the session is ``busy``; busy is released exactly once
when the call settles, whatever the outcome. An unexpected exception still
settles the session as Idle + ErrorShown before it propagates. The last
successful artifact is kept until a later generation replaces it.

Example:
    >>> with SpeechClient("http://localhost:8000") as client:
    ...     session = GenerationSession(client)
    ...     if session.generate("Hello world, this is a test.", "en-US-Neural2-A"):
    ...         path = session.download("out")
    ...     else:
    ...         print(session.error_message)
"""
from __future__ import annotations

import time
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from voiceover_relay.api.schemas import ErrorResponse, GenerateSpeechRequest
from voiceover_relay.core.config import Defaults
from voiceover_relay.core.logging import get_logger, info, success, warn
from voiceover_relay.services.relay_service import AudioArtifact, SynthesisRequest
from voiceover_relay.services.validators import (
    ValidationError,
    coerce_speed,
    validate_script,
    validate_voice,
)

_LOG = get_logger("voiceover.client")

GENERATE_SPEECH_PATH = "/api/generate-speech"
DEFAULT_RELAY_ERROR = "Failed to generate audio"


class RelayError(Exception):
    """
    The relay call failed.

    Attributes:
        message: Message to show the user verbatim.
        status_code: Relay HTTP status, None for transport failures.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NothingToDownloadError(Exception):
    """download() was called before any audio was generated."""

    def __init__(self, message: str = "No audio to download. Please generate audio first."):
        self.message = message
        super().__init__(message)


def validate(
    raw_text: Optional[str],
    voice: Optional[str],
    speed: Any = Defaults.DEFAULT_SPEED,
    min_chars: int = Defaults.LIMITS_MIN_TEXT_CHARS,
) -> SynthesisRequest:
    """
    Build a SynthesisRequest from raw form values.

    Raises:
        ValidationError: EMPTY_INPUT, TOO_SHORT or VOICE_REQUIRED, or
            INVALID_SPEED for a speed that is not a positive number.
    """
    text = validate_script(raw_text, min_chars)
    voice_id = validate_voice(voice)
    return SynthesisRequest(text=text, voice_id=voice_id, speed=coerce_speed(speed))


def _error_message(response: httpx.Response) -> str:
    try:
        return ErrorResponse.model_validate_json(response.content).error or DEFAULT_RELAY_ERROR
    except PydanticValidationError:
        return DEFAULT_RELAY_ERROR


class SpeechClient:
    """
    Synchronous HTTP client for the relay.

    Args:
        base_url: Relay root, e.g. "http://localhost:8000".
        timeout_s: Whole-request timeout.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str = Defaults.CLIENT_BASE_URL,
        timeout_s: float = Defaults.CLIENT_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._http = httpx.Client(base_url=base_url, timeout=timeout_s, transport=transport)

    def submit(self, request: SynthesisRequest) -> AudioArtifact:
        """
        Send one request to the relay.

        Returns:
            The full response body as an AudioArtifact.

        Raises:
            RelayError: Non-2xx response (message from its ``error`` field,
                or "Failed to generate audio") or transport failure.
        """
        body = GenerateSpeechRequest(
            text=request.text, voice=request.voice_id, speed=request.speed,
        ).model_dump()

        try:
            response = self._http.post(GENERATE_SPEECH_PATH, json=body)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise RelayError(f"Could not reach relay: {e}")

        if not response.is_success:
            raise RelayError(_error_message(response), response.status_code)

        media_type = response.headers.get("content-type", "audio/mpeg").split(";")[0]
        return AudioArtifact(audio_bytes=response.content, media_type=media_type)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "SpeechClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SessionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"


class Outcome(str, Enum):
    ERROR_SHOWN = "error_shown"
    RESULT_READY = "result_ready"


class GenerationSession:
    """
    Per-session state for one user: current phase, last error, last audio.

    Attributes:
        state: Current SessionState.
        outcome: Outcome of the last settled cycle (None before the first).
        error_message: Message of the last failure, cleared on a new attempt.
        artifact: Last successfully generated audio.
    """

    def __init__(self, client: SpeechClient, min_chars: int = Defaults.LIMITS_MIN_TEXT_CHARS):
        self._client = client
        self._min_chars = min_chars
        self.state = SessionState.IDLE
        self.outcome: Optional[Outcome] = None
        self.error_message: Optional[str] = None
        self.artifact: Optional[AudioArtifact] = None
        self._busy = False

    @property
    def busy(self) -> bool:
        """True only while a relay call is in flight."""
        return self._busy

    def generate(self, raw_text: Optional[str], voice: Optional[str],
                 speed: Any = Defaults.DEFAULT_SPEED) -> Optional[AudioArtifact]:
        """
        Run one generation cycle.

        Returns:
            The new artifact, or None on failure (see ``error_message``).
        """
        self.outcome = None
        self.error_message = None
        self.state = SessionState.VALIDATING

        try:
            request = validate(raw_text, voice, speed, self._min_chars)
        except ValidationError as e:
            return self._settle_error(e.message)

        self.state = SessionState.SUBMITTING
        self._busy = True
        try:
            info(_LOG, "submit", chars=len(request.text), voice=request.voice_id, speed=request.speed)
            artifact = self._client.submit(request)
        except RelayError as e:
            return self._settle_error(e.message, e.status_code)
        except Exception:
            self._settle_error(DEFAULT_RELAY_ERROR)
            raise
        finally:
            self._busy = False

        self.artifact = artifact
        self.outcome = Outcome.RESULT_READY
        self.state = SessionState.IDLE
        success(_LOG, "audio_ready", bytes=artifact.content_length)
        return artifact

    def download(self, directory: str | Path = ".", filename: Optional[str] = None) -> Path:
        """
        Save the current artifact.

        Args:
            directory: Target directory (created if missing).
            filename: Override for the default ``voiceover-<epoch-millis>.mp3``.

        Raises:
            NothingToDownloadError: No audio has been generated yet.
        """
        if self.artifact is None:
            err = NothingToDownloadError()
            self._settle_error(err.message)
            raise err

        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / (filename or default_filename())
        path.write_bytes(self.artifact.audio_bytes)
        info(_LOG, "saved", path=str(path), bytes=self.artifact.content_length)
        return path

    def _settle_error(self, message: str, status: Optional[int] = None) -> None:
        self.error_message = message
        self.outcome = Outcome.ERROR_SHOWN
        self.state = SessionState.IDLE
        if status is not None:
            warn(_LOG, "generate_failed", status=status, error=message)
        else:
            warn(_LOG, "generate_failed", error=message)
        return None


def default_filename(now_ms: Optional[int] = None) -> str:
    """``voiceover-<epoch-millis>.mp3`` for the current (or given) time."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"voiceover-{now_ms}.mp3"
