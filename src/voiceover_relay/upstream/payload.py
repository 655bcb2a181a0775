"""
Google Cloud Text-to-Speech wire models.

Request (POST /v1/text:synthesize, X-Goog-Api-Key header):
    {
        "input": {"text": "Hello world"},
        "voice": {"languageCode": "en-US", "name": "en-US-Neural2-A"},
        "audioConfig": {
            "audioEncoding": "MP3",
            "speakingRate": 1.0,
            "pitch": 0.0,
            "volumeGainDb": 0.0
        }
    }

Success response:
    {"audioContent": "<base64 MP3>"}

Error response:
    {"error": {"code": 403, "message": "...", "status": "PERMISSION_DENIED"}}

Python attribute names are snake_case; the camelCase wire names come from
the alias generator and are used by ``to_wire()``.
"""
from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from voiceover_relay.services.relay_service import SynthesisRequest

AUDIO_ENCODING_MP3 = "MP3"
DEFAULT_UPSTREAM_ERROR = "Failed to generate speech"


def language_code_from_voice(voice_id: str) -> str:
    """
    Derive the BCP-47 language code from a voice name.

    The first two hyphen-separated segments are the language and region:

        >>> language_code_from_voice("en-US-Neural2-A")
        'en-US'
        >>> language_code_from_voice("cmn-CN-Wavenet-B")
        'cmn-CN'
    """
    return "-".join(voice_id.split("-")[:2])


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SynthesisInput(_WireModel):
    text: str = Field(..., min_length=1)


class VoiceSelection(_WireModel):
    language_code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class AudioConfig(_WireModel):
    audio_encoding: str = AUDIO_ENCODING_MP3
    speaking_rate: float = Field(1.0, gt=0)
    pitch: float = 0.0
    volume_gain_db: float = 0.0


class UpstreamSynthesisPayload(_WireModel):
    """
    The provider request derived deterministically from a SynthesisRequest.

    Example:
        >>> payload = UpstreamSynthesisPayload.from_request(request)
        >>> payload.to_wire()["voice"]
        {'languageCode': 'en-US', 'name': 'en-US-Neural2-A'}
    """
    input: SynthesisInput
    voice: VoiceSelection
    audio_config: AudioConfig

    @classmethod
    def from_request(cls, request: "SynthesisRequest") -> "UpstreamSynthesisPayload":
        return cls(
            input=SynthesisInput(text=request.text),
            voice=VoiceSelection(
                language_code=language_code_from_voice(request.voice_id),
                name=request.voice_id,
            ),
            audio_config=AudioConfig(speaking_rate=request.speed or 1.0),
        )

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with the provider's camelCase field names."""
        return self.model_dump(by_alias=True)


@dataclass
class UpstreamSynthesisResult:
    """
    Interpreted upstream response.

    Attributes:
        status_code: HTTP status returned by the provider.
        audio_content: Base64 audio string (success responses only, may be None).
        message: Error message (error responses only).
    """
    status_code: int
    audio_content: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @classmethod
    def from_response(cls, status_code: int, content: bytes) -> "UpstreamSynthesisResult":
        """
        Parse a provider response body.

        A success body must be JSON; a parse failure raises ValueError and is
        reported by the relay as an internal error. Error bodies are read
        best-effort: ``error.message`` when present, otherwise a generic
        message, and the status code is always preserved.
        """
        if 200 <= status_code < 300:
            data = json.loads(content)
            audio = data.get("audioContent") if isinstance(data, dict) else None
            return cls(status_code=status_code, audio_content=audio or None)

        return cls(status_code=status_code, message=_extract_error_message(content))

    def decode_audio(self) -> bytes:
        """
        Decode ``audio_content`` to raw audio bytes.

        Raises:
            ValueError: If there is no audio content or it is not valid base64.
        """
        if not self.audio_content:
            raise ValueError("no audio content to decode")
        return base64.b64decode(self.audio_content, validate=True)


def _extract_error_message(content: bytes) -> str:
    try:
        data = json.loads(content)
    except ValueError:
        return DEFAULT_UPSTREAM_ERROR

    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return DEFAULT_UPSTREAM_ERROR
