"""
voiceover-relay: Text-to-speech relay for Google Cloud Text-to-Speech.

A small FastAPI service that accepts ``{text, voice, speed}``, forwards it
to Google's ``text:synthesize`` endpoint with a server-held API key, and
returns the decoded MP3 bytes (or a JSON error carrying the provider's
status code and message). A Python client and the ``voiceover`` command
line tool cover the caller side.

Key Features:
    - POST /api/generate-speech relay with CORS pre-flight support
    - Base64 to binary audio transcoding with correct framing
    - Upstream errors forwarded with their original status code
    - Bounded upstream timeout and input length
    - Structured logging and Prometheus metrics (/metrics)

Example Usage:
    >>> from voiceover_relay.client import GenerationSession, SpeechClient
    >>>
    >>> session = GenerationSession(SpeechClient("http://localhost:8000"))
    >>> session.generate("Hello world, this is a test.", "en-US-Neural2-A", 1.0)
    >>> session.download(".")
    PosixPath('voiceover-1792310400000.mp3')
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
