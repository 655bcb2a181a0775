"""
SpeechRelay - request relay and payload transcoding.

This is the only component with protocol knowledge. It turns the client's
JSON body into a Google Text-to-Speech request, makes exactly one upstream
call, and turns the result into either MP3 bytes or a JSON error.

Pipeline:
    method check → body → SynthesisRequest → credential → payload
        → upstream call → UpstreamSynthesisResult → base64 decode → AudioArtifact

Response Contract:
    OPTIONS                         200, empty body
    not POST                        405 {"error": "Method not allowed. Use POST."}
    missing text/voice              400 {"error": "Missing required fields: text and voice"}
    text too long / bad speed       400 {"error": "..."}
    API key env var unset           500 {"error": "Server configuration error: API key not found"}
    upstream status S (not 2xx)     S   {"error": <upstream error.message>}
    upstream 2xx, no audioContent   500 {"error": "No audio content received from Google"}
    upstream timeout                504 {"error": "Upstream request timed out after <t>s"}
    anything else                   500 {"error": "Internal server error: <cause>"}
    success                         200 audio/mpeg, Content-Length = decoded size

Every response carries the CORS headers in CORS_HEADERS.

Example:
    >>> relay = SpeechRelay(RelayConfig())
    >>> response = await relay.handle("POST", {
    ...     "text": "Hello world, this is a test.",
    ...     "voice": "en-US-Neural2-A",
    ...     "speed": 1.0,
    ... })
    >>> response.status_code, response.media_type
    (200, 'audio/mpeg')
"""
from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from voiceover_relay import __version__
from voiceover_relay.core.config import Defaults, LimitsConfig, RelayConfig
from voiceover_relay.core.logging import (
    error,
    fail,
    get_logger,
    info,
    success,
    verbose,
    warn,
)
from voiceover_relay.core.metrics import metrics
from voiceover_relay.services.validators import (
    ValidationError,
    coerce_speed,
    validate_text_length,
)
from voiceover_relay.upstream import GoogleTTSClient, UpstreamSynthesisPayload
from voiceover_relay.utils.timeit import timeit

_LOG = get_logger("voiceover.relay")

AUDIO_MEDIA_TYPE = "audio/mpeg"
JSON_MEDIA_TYPE = "application/json"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


# =============================================================================
# Error Codes and Exceptions
# =============================================================================

class ErrorCode:
    """Machine-readable codes for relay errors (logged, not sent to callers)."""
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    MISSING_FIELDS = "MISSING_FIELDS"
    INVALID_INPUT = "INVALID_INPUT"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    NO_AUDIO_CONTENT = "NO_AUDIO_CONTENT"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class RelayServiceError(Exception):
    """
    Base exception for relay errors.

    Attributes:
        message: Message returned to the caller as ``{"error": message}``.
        code: Value from ErrorCode.
        status_code: HTTP status of the relay response.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, status_code: int = 500):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Error body sent to the caller."""
        return {"error": self.message}


class MethodNotAllowedError(RelayServiceError):
    """Raised for any method other than POST (and the OPTIONS pre-flight)."""
    def __init__(self, method: str):
        super().__init__("Method not allowed. Use POST.", ErrorCode.METHOD_NOT_ALLOWED, 405)
        self.method = method


class MissingFieldsError(RelayServiceError):
    """Raised when ``text`` or ``voice`` is absent or empty."""
    def __init__(self):
        super().__init__("Missing required fields: text and voice", ErrorCode.MISSING_FIELDS, 400)


class InvalidInputError(RelayServiceError):
    """Raised when a present field fails validation (length, speed, type)."""
    def __init__(self, message: str):
        super().__init__(message, ErrorCode.INVALID_INPUT, 400)


class ConfigurationError(RelayServiceError):
    """Raised when the provider API key is missing from the environment."""
    def __init__(self, message: str = "Server configuration error: API key not found"):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, 500)


class UpstreamError(RelayServiceError):
    """Raised when the provider rejects the request; keeps its status code."""
    def __init__(self, message: str, status_code: int):
        super().__init__(message, ErrorCode.UPSTREAM_ERROR, status_code)


class PayloadError(RelayServiceError):
    """Raised when the provider succeeds but sends no audio."""
    def __init__(self, message: str = "No audio content received from Google"):
        super().__init__(message, ErrorCode.NO_AUDIO_CONTENT, 500)


class UpstreamTimeoutError(RelayServiceError):
    """Raised when the provider does not answer within the configured timeout."""
    def __init__(self, timeout_s: float):
        super().__init__(
            f"Upstream request timed out after {timeout_s}s",
            ErrorCode.UPSTREAM_TIMEOUT,
            504,
        )
        self.timeout_s = timeout_s


class TransportError(RelayServiceError):
    """Raised for network, parse or decode failures anywhere in the call chain."""
    def __init__(self, cause: str):
        super().__init__(f"Internal server error: {cause}", ErrorCode.INTERNAL_ERROR, 500)


# =============================================================================
# Request/Response Records
# =============================================================================

@dataclass
class SynthesisRequest:
    """
    Validated parameters for one synthesis attempt.

    Attributes:
        text: Script text.
        voice_id: Provider voice name, e.g. "en-US-Neural2-A".
        speed: Speaking rate, 1.0 is normal.
    """
    text: str
    voice_id: str
    speed: float = Defaults.DEFAULT_SPEED

    def __post_init__(self) -> None:
        if not self.text or not self.voice_id:
            raise MissingFieldsError()

    @classmethod
    def from_body(cls, body: Any, limits: Optional[LimitsConfig] = None) -> "SynthesisRequest":
        """
        Build a request from the decoded JSON body ``{text, voice, speed}``.

        Raises:
            MissingFieldsError: Body is not an object or lacks text/voice.
            InvalidInputError: A field is present but invalid.
        """
        limits = limits or LimitsConfig()

        if not isinstance(body, dict):
            raise MissingFieldsError()

        text = body.get("text")
        voice = body.get("voice")
        if not text or not voice:
            raise MissingFieldsError()
        if not isinstance(text, str) or not isinstance(voice, str):
            raise InvalidInputError("Invalid fields: text and voice must be strings")

        try:
            validate_text_length(text, limits.max_text_chars)
            speed = coerce_speed(body.get("speed"))
        except ValidationError as e:
            raise InvalidInputError(e.message)

        return cls(text=text, voice_id=voice, speed=speed)

    def to_body(self) -> Dict[str, Any]:
        """The client-to-relay JSON body for this request."""
        return {"text": self.text, "voice": self.voice_id, "speed": self.speed}


@dataclass
class AudioArtifact:
    """Decoded MP3 bytes ready to be sent or saved."""
    audio_bytes: bytes
    media_type: str = AUDIO_MEDIA_TYPE

    @property
    def content_length(self) -> int:
        return len(self.audio_bytes)


@dataclass
class RelayResponse:
    """
    Framework-neutral relay response; the API layer converts it.

    Attributes:
        status_code: HTTP status.
        content: Body bytes (audio, JSON error, or empty).
        media_type: Content type, None for an empty body.
        headers: Extra headers (CORS, Content-Length).
    """
    status_code: int
    content: bytes = b""
    media_type: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=lambda: dict(CORS_HEADERS))

    @classmethod
    def preflight(cls) -> "RelayResponse":
        return cls(status_code=200)

    @classmethod
    def from_artifact(cls, artifact: AudioArtifact) -> "RelayResponse":
        response = cls(status_code=200, content=artifact.audio_bytes, media_type=artifact.media_type)
        response.headers["Content-Length"] = str(artifact.content_length)
        return response

    @classmethod
    def from_error(cls, err: RelayServiceError) -> "RelayResponse":
        return cls(
            status_code=err.status_code,
            content=json.dumps(err.to_dict()).encode("utf-8"),
            media_type=JSON_MEDIA_TYPE,
        )


# =============================================================================
# Relay
# =============================================================================

class SpeechRelay:
    """
    Stateless relay between the client and the synthesis provider.

    Each call to handle() is independent; the only shared inputs are the
    read-only configuration and the API key read from the environment at
    call time.

    Args:
        config: Validated relay configuration.
        upstream: Provider client; built from config.upstream when omitted.
    """

    def __init__(self, config: RelayConfig, upstream: Optional[GoogleTTSClient] = None):
        self._config = config
        self._upstream = upstream or GoogleTTSClient(config.upstream)

    @property
    def config(self) -> RelayConfig:
        return self._config

    def api_key(self) -> Optional[str]:
        """Current provider API key, or None if unset or empty."""
        return os.environ.get(self._config.upstream.api_key_env) or None

    async def handle(self, method: str, body: Any) -> RelayResponse:
        """
        Handle one inbound request.

        Never raises: every failure becomes a RelayResponse with a JSON
        error body, and every failure is logged.

        Args:
            method: HTTP method of the inbound request.
            body: Decoded JSON body (None when absent or unparseable).
        """
        method = method.upper()
        if method == "OPTIONS":
            return RelayResponse.preflight()

        try:
            if method != "POST":
                raise MethodNotAllowedError(method)

            request = SynthesisRequest.from_body(body, self._config.limits)
            artifact = await self.synthesize(request)
            response = RelayResponse.from_artifact(artifact)

        except RelayServiceError as e:
            self._log_error(e)
            response = RelayResponse.from_error(e)

        except Exception as e:
            err = TransportError(self._redact(str(e)))
            error(_LOG, "relay_unexpected_error", status=err.status_code,
                  error=err.message, error_type=type(e).__name__)
            response = RelayResponse.from_error(err)

        audio_bytes = len(response.content) if response.media_type == AUDIO_MEDIA_TYPE else 0
        metrics.record_response(response.status_code, audio_bytes=audio_bytes)
        return response

    async def synthesize(self, request: SynthesisRequest) -> AudioArtifact:
        """
        Make the single upstream call for ``request`` and decode the audio.

        Raises:
            ConfigurationError: API key missing.
            UpstreamError: Provider returned a non-success status.
            PayloadError: Provider succeeded without audioContent.
            UpstreamTimeoutError: Provider exceeded the timeout.
            TransportError: Network, parse or decode failure.
        """
        preview_chars = self._config.logging.text_preview_chars
        info(_LOG, "relay_request", chars=len(request.text), voice=request.voice_id,
             speed=request.speed, text_preview=request.text[:preview_chars] if preview_chars else "")

        api_key = self.api_key()
        if not api_key:
            raise ConfigurationError()

        payload = UpstreamSynthesisPayload.from_request(request)
        verbose(_LOG, "upstream_payload", language=payload.voice.language_code,
                voice=payload.voice.name, speaking_rate=payload.audio_config.speaking_rate)

        timer = timeit("upstream")
        try:
            with timer:
                result = await self._upstream.synthesize(payload, api_key)
        except httpx.TimeoutException:
            raise UpstreamTimeoutError(self._config.upstream.timeout_s)
        except Exception as e:
            raise TransportError(self._redact(str(e), api_key))
        finally:
            metrics.observe_upstream(timer.seconds)

        if not result.ok:
            metrics.record_upstream_error(result.status_code)
            raise UpstreamError(result.message or "Failed to generate speech", result.status_code)

        if not result.audio_content:
            raise PayloadError()

        try:
            audio = result.decode_audio()
        except ValueError as e:
            raise TransportError(f"invalid audio content: {e}")

        success(_LOG, "relay_done", status=200, bytes=len(audio), seconds=round(timer.seconds, 3))
        return AudioArtifact(audio_bytes=audio)

    def health_info(self) -> Dict[str, Any]:
        """Status for the /health endpoint. Never exposes the key itself."""
        return {
            "ok": True,
            "version": __version__,
            "api_key_configured": self.api_key() is not None,
            "upstream": self._upstream.url,
            "timeout_s": self._upstream.timeout_s,
        }

    def _redact(self, text: str, api_key: Optional[str] = None) -> str:
        key = api_key or self.api_key()
        if key and key in text:
            return text.replace(key, "***")
        return text

    def _log_error(self, e: RelayServiceError) -> None:
        if isinstance(e, (UpstreamError, UpstreamTimeoutError)):
            fail(_LOG, "upstream_failed", status=e.status_code, code=e.code, error=e.message)
        elif e.status_code >= 500:
            error(_LOG, "relay_error", status=e.status_code, code=e.code, error=e.message)
        else:
            warn(_LOG, "relay_rejected", status=e.status_code, code=e.code, error=e.message)


# =============================================================================
# Global Relay Singleton
# =============================================================================

_relay: Optional[SpeechRelay] = None
_relay_lock = threading.Lock()


def get_speech_relay(config: RelayConfig) -> SpeechRelay:
    """Get or create the process-wide SpeechRelay."""
    global _relay
    if _relay is None:
        with _relay_lock:
            if _relay is None:
                _relay = SpeechRelay(config)
    return _relay


def reset_relay() -> None:
    """Drop the process-wide relay (tests)."""
    global _relay
    with _relay_lock:
        _relay = None
