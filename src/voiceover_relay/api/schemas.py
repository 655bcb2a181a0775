"""
API Request/Response Schemas.

These Pydantic models describe the relay's HTTP contract for OpenAPI and
are used by the Python client to build request bodies and read error
bodies. The relay endpoint itself reads the raw JSON body so that missing
fields produce the relay's own 400 message rather than a 422.

Example Request:
    {
        "text": "Hello world, this is a test.",
        "voice": "en-US-Neural2-A",
        "speed": 1.0
    }
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class GenerateSpeechRequest(BaseModel):
    """
    Body of ``POST /api/generate-speech``.

    Attributes:
        text: Script to synthesize.
        voice: Provider voice name. The language code is derived from its
            first two segments ("en-US-Neural2-A" -> "en-US").
        speed: Speaking rate, 1.0 is normal.
    """
    text: str = Field(..., min_length=1, description="Script text to synthesize")
    voice: str = Field(..., min_length=1, description="Voice name, e.g. en-US-Neural2-A")
    speed: float = Field(default=1.0, gt=0, description="Speaking rate (1.0 = normal)")


class ErrorResponse(BaseModel):
    """JSON body of every non-2xx relay response."""
    error: str = Field(..., description="Human-readable error message")


class HealthResponse(BaseModel):
    """Body of ``GET /health``."""
    ok: bool
    version: str
    api_key_configured: bool = Field(..., description="Whether the provider key is present")
    upstream: str = Field(..., description="Upstream synthesize URL")
    timeout_s: float = Field(..., description="Upstream call timeout in seconds")
