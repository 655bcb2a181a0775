"""
Upstream synthesis provider (Google Cloud Text-to-Speech).

    - payload.py: Request/response wire models
    - google_client.py: Async HTTP client
"""
from .google_client import GoogleTTSClient
from .payload import (
    AudioConfig,
    SynthesisInput,
    UpstreamSynthesisPayload,
    UpstreamSynthesisResult,
    VoiceSelection,
    language_code_from_voice,
)

__all__ = [
    "GoogleTTSClient",
    "UpstreamSynthesisPayload",
    "UpstreamSynthesisResult",
    "SynthesisInput",
    "VoiceSelection",
    "AudioConfig",
    "language_code_from_voice",
]
