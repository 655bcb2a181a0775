"""
voiceover-relay Services Layer.

    - relay_service.py: SpeechRelay (validation, upstream call, transcoding)
    - validators.py: Input validation shared by the relay and the client
"""
from .relay_service import (
    AudioArtifact,
    ConfigurationError,
    ErrorCode,
    InvalidInputError,
    MethodNotAllowedError,
    MissingFieldsError,
    PayloadError,
    RelayResponse,
    RelayServiceError,
    SpeechRelay,
    SynthesisRequest,
    TransportError,
    UpstreamError,
    UpstreamTimeoutError,
)

__all__ = [
    "SpeechRelay",
    "SynthesisRequest",
    "AudioArtifact",
    "RelayResponse",
    "RelayServiceError",
    "MethodNotAllowedError",
    "MissingFieldsError",
    "InvalidInputError",
    "ConfigurationError",
    "UpstreamError",
    "PayloadError",
    "UpstreamTimeoutError",
    "TransportError",
    "ErrorCode",
]
