"""Shared fixtures: a relay wired to a mocked provider, no network."""
from __future__ import annotations

import base64
import json
from typing import Callable, List

import httpx
import pytest

from voiceover_relay.core.config import RelayConfig
from voiceover_relay.services.relay_service import SpeechRelay, reset_relay
from voiceover_relay.upstream import GoogleTTSClient

API_KEY = "test-key-abc123"
FAKE_MP3 = b"ID3\x03\x00\x00\x00fake-mp3-frames" + bytes(range(32))


def audio_response(audio: bytes = FAKE_MP3) -> httpx.Response:
    """Provider success body carrying ``audio`` as base64."""
    return httpx.Response(200, json={"audioContent": base64.b64encode(audio).decode("ascii")})


class UpstreamRecorder:
    """
    Mock provider: records every request and answers with ``responder``.

    Attributes:
        calls: Requests received, in order.
    """

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self._responder = responder
        self.calls: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        return self._responder(request)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def last_json(self) -> dict:
        return json.loads(self.calls[-1].content)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Each test starts with the provider key set and no env overrides."""
    monkeypatch.setenv("GOOGLE_CLOUD_API_KEY", API_KEY)
    for name in (
        "VOICEOVER_UPSTREAM_URL",
        "VOICEOVER_UPSTREAM_TIMEOUT",
        "VOICEOVER_RELAY_URL",
        "VOICEOVER_LOG_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_relay()
    yield
    reset_relay()


@pytest.fixture
def make_relay():
    """Factory: ``make_relay(responder)`` -> (SpeechRelay, UpstreamRecorder)."""

    def _make(responder=None, config: RelayConfig | None = None):
        recorder = UpstreamRecorder(responder or (lambda request: audio_response()))
        config = config or RelayConfig()
        upstream = GoogleTTSClient(config.upstream, transport=httpx.MockTransport(recorder))
        return SpeechRelay(config, upstream=upstream), recorder

    return _make
