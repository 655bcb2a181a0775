"""
Async client for the Google Cloud Text-to-Speech REST API.

One call per relay request, no retries. The API key travels in the
``X-Goog-Api-Key`` header, so it never appears in a request URL.
Transport errors (timeouts, connection failures) propagate as httpx
exceptions; the relay decides how to report them.
"""
from __future__ import annotations

from typing import Optional

import httpx

from voiceover_relay.core.config import UpstreamConfig
from voiceover_relay.core.logging import debug, get_logger, verbose
from voiceover_relay.upstream.payload import UpstreamSynthesisPayload, UpstreamSynthesisResult

_LOG = get_logger("voiceover.upstream")

API_KEY_HEADER = "X-Goog-Api-Key"


class GoogleTTSClient:
    """
    Thin wrapper around ``POST {base_url}/v1/text:synthesize``.

    Args:
        config: Upstream section of the relay configuration.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(self, config: UpstreamConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._config = config
        self._transport = transport

    @property
    def url(self) -> str:
        return self._config.synthesize_url

    @property
    def timeout_s(self) -> float:
        return self._config.timeout_s

    async def synthesize(self, payload: UpstreamSynthesisPayload, api_key: str) -> UpstreamSynthesisResult:
        """
        Send one synthesis request and interpret the response.

        Raises:
            httpx.TimeoutException: The provider did not answer within timeout_s.
            httpx.HTTPError: Any other transport failure.
            ValueError: A success response whose body is not JSON.
        """
        wire = payload.to_wire()
        verbose(_LOG, "upstream_request", url=self.url, voice=payload.voice.name,
                language=payload.voice.language_code,
                speaking_rate=payload.audio_config.speaking_rate)
        debug(_LOG, "upstream_payload", payload=wire)

        async with httpx.AsyncClient(timeout=self._config.timeout_s, transport=self._transport) as client:
            response = await client.post(
                self.url,
                json=wire,
                headers={"Content-Type": "application/json", API_KEY_HEADER: api_key},
            )

        verbose(_LOG, "upstream_response", status=response.status_code,
                bytes=len(response.content))
        return UpstreamSynthesisResult.from_response(response.status_code, response.content)
