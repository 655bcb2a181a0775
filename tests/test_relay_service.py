"""
Tests for SpeechRelay.handle().

The provider is an httpx.MockTransport, so every test also checks how many
upstream calls were made.
"""
from __future__ import annotations

import asyncio
import io
import json
from unittest.mock import patch

import httpx
import pytest

from conftest import API_KEY, FAKE_MP3, audio_response
from voiceover_relay.core.config import LimitsConfig, RelayConfig, UpstreamConfig
from voiceover_relay.core.logging import configure_logging
from voiceover_relay.services.relay_service import (
    CORS_HEADERS,
    ErrorCode,
    MissingFieldsError,
    SynthesisRequest,
    TransportError,
    UpstreamTimeoutError,
)

VALID_BODY = {"text": "Hello world, this is a test.", "voice": "en-US-Neural2-A", "speed": 1.0}


def _run(relay, method="POST", body=None):
    return asyncio.run(relay.handle(method, body))


def _error(response) -> str:
    assert response.media_type == "application/json"
    return json.loads(response.content)["error"]


class TestSuccess:
    """Happy path: one upstream call, decoded MP3 returned."""

    def test_returns_decoded_audio(self, make_relay):
        relay, upstream = make_relay()
        response = _run(relay, body=VALID_BODY)

        assert response.status_code == 200
        assert response.content == FAKE_MP3
        assert response.media_type == "audio/mpeg"
        assert response.headers["Content-Length"] == str(len(FAKE_MP3))
        assert upstream.call_count == 1

    def test_same_upstream_body_same_audio(self, make_relay):
        relay, upstream = make_relay()
        first = _run(relay, body=VALID_BODY)
        second = _run(relay, body=VALID_BODY)

        assert first.content == second.content == FAKE_MP3
        assert first.headers["Content-Length"] == second.headers["Content-Length"] == str(len(FAKE_MP3))
        assert upstream.call_count == 2

    def test_upstream_request_shape(self, make_relay):
        relay, upstream = make_relay()
        _run(relay, body={"text": "Guten Tag, wie geht es?", "voice": "de-DE-Neural2-B", "speed": 0.8})

        sent = upstream.calls[0]
        assert sent.method == "POST"
        assert sent.url.path == "/v1/text:synthesize"
        assert sent.headers["X-Goog-Api-Key"] == API_KEY
        assert "key" not in sent.url.params
        assert upstream.last_json() == {
            "input": {"text": "Guten Tag, wie geht es?"},
            "voice": {"languageCode": "de-DE", "name": "de-DE-Neural2-B"},
            "audioConfig": {
                "audioEncoding": "MP3",
                "speakingRate": 0.8,
                "pitch": 0.0,
                "volumeGainDb": 0.0,
            },
        }

    def test_missing_speed_defaults_to_one(self, make_relay):
        relay, upstream = make_relay()
        _run(relay, body={"text": "Hello world, this is a test.", "voice": "en-US-Neural2-A"})
        assert upstream.last_json()["audioConfig"]["speakingRate"] == 1.0

    def test_cors_headers_present(self, make_relay):
        relay, _ = make_relay()
        response = _run(relay, body=VALID_BODY)
        for name, value in CORS_HEADERS.items():
            assert response.headers[name] == value

    def test_independent_requests(self, make_relay):
        """Sequential requests each make exactly one upstream call."""
        relay, upstream = make_relay()
        for _ in range(3):
            assert _run(relay, body=VALID_BODY).status_code == 200
        assert upstream.call_count == 3


class TestMethodHandling:
    """OPTIONS pre-flight and non-POST methods."""

    def test_options_preflight(self, make_relay):
        relay, upstream = make_relay()
        response = _run(relay, method="OPTIONS")

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert response.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
        assert response.headers["Access-Control-Allow-Headers"] == "Content-Type"
        assert upstream.call_count == 0

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH", "HEAD"])
    def test_other_methods_rejected(self, make_relay, method):
        relay, upstream = make_relay()
        response = _run(relay, method=method, body=VALID_BODY)

        assert response.status_code == 405
        assert _error(response) == "Method not allowed. Use POST."
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert upstream.call_count == 0

    def test_method_case_insensitive(self, make_relay):
        relay, _ = make_relay()
        assert _run(relay, method="post", body=VALID_BODY).status_code == 200


class TestInputErrors:
    """400 responses; the provider is never called."""

    @pytest.mark.parametrize(
        "body",
        [
            None,
            [],
            "text",
            {},
            {"voice": "en-US-Neural2-A"},
            {"text": "Hello world, this is a test."},
            {"text": "", "voice": "en-US-Neural2-A"},
            {"text": "Hello world, this is a test.", "voice": ""},
        ],
    )
    def test_missing_fields(self, make_relay, body):
        relay, upstream = make_relay()
        response = _run(relay, body=body)

        assert response.status_code == 400
        assert _error(response) == "Missing required fields: text and voice"
        assert upstream.call_count == 0

    def test_non_string_fields(self, make_relay):
        relay, upstream = make_relay()
        response = _run(relay, body={"text": 12345, "voice": "en-US-Neural2-A"})
        assert response.status_code == 400
        assert upstream.call_count == 0

    def test_text_too_long(self, make_relay):
        relay, upstream = make_relay()
        response = _run(relay, body={"text": "a" * 5001, "voice": "en-US-Neural2-A"})

        assert response.status_code == 400
        assert _error(response) == "Text exceeds maximum length (5001 > 5000)"
        assert upstream.call_count == 0

    def test_configured_text_limit(self, make_relay):
        config = RelayConfig(limits=LimitsConfig(max_text_chars=20))
        relay, upstream = make_relay(config=config)
        response = _run(relay, body={"text": "a" * 21, "voice": "en-US-Neural2-A"})
        assert _error(response) == "Text exceeds maximum length (21 > 20)"

    @pytest.mark.parametrize("speed", ["fast", -2, True])
    def test_invalid_speed(self, make_relay, speed):
        relay, upstream = make_relay()
        response = _run(relay, body={**VALID_BODY, "speed": speed})

        assert response.status_code == 400
        assert _error(response) == "Invalid speed: must be a positive number"
        assert upstream.call_count == 0

    def test_provider_judges_speaking_rate(self, make_relay):
        """A positive rate is forwarded and the provider's own rejection comes back."""
        message = "Speaking rate 10.000000 is out of range. Valid range: [0.25, 4.0]."

        def responder(request):
            return httpx.Response(
                400, json={"error": {"code": 400, "message": message, "status": "INVALID_ARGUMENT"}},
            )

        relay, upstream = make_relay(responder)
        response = _run(relay, body={**VALID_BODY, "speed": 10})

        assert upstream.call_count == 1
        assert upstream.last_json()["audioConfig"]["speakingRate"] == 10.0
        assert response.status_code == 400
        assert _error(response) == message


class TestConfigurationError:
    """Missing API key."""

    def test_missing_key(self, make_relay, monkeypatch):
        monkeypatch.delenv("GOOGLE_CLOUD_API_KEY")
        relay, upstream = make_relay()
        response = _run(relay, body=VALID_BODY)

        assert response.status_code == 500
        assert _error(response) == "Server configuration error: API key not found"
        assert upstream.call_count == 0

    def test_empty_key_counts_as_missing(self, make_relay, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLOUD_API_KEY", "")
        relay, _ = make_relay()
        assert _run(relay, body=VALID_BODY).status_code == 500

    def test_key_read_per_request(self, make_relay, monkeypatch):
        """A key exported after startup is picked up without a restart."""
        monkeypatch.delenv("GOOGLE_CLOUD_API_KEY")
        relay, _ = make_relay()
        assert _run(relay, body=VALID_BODY).status_code == 500

        monkeypatch.setenv("GOOGLE_CLOUD_API_KEY", "late-key")
        assert _run(relay, body=VALID_BODY).status_code == 200

    def test_custom_key_variable(self, make_relay, monkeypatch):
        monkeypatch.setenv("MY_TTS_KEY", "other-key")
        config = RelayConfig(upstream=UpstreamConfig(api_key_env="MY_TTS_KEY"))
        relay, upstream = make_relay(config=config)

        assert _run(relay, body=VALID_BODY).status_code == 200
        assert upstream.calls[0].headers["X-Goog-Api-Key"] == "other-key"


class TestUpstreamErrors:
    """Provider failures are passed through with their status code."""

    def test_upstream_message_and_status(self, make_relay):
        relay, upstream = make_relay(lambda request: httpx.Response(
            403, json={"error": {"code": 403, "message": "API key not valid. Please pass a valid API key."}},
        ))
        response = _run(relay, body=VALID_BODY)

        assert response.status_code == 403
        assert _error(response) == "API key not valid. Please pass a valid API key."
        assert upstream.call_count == 1

    def test_upstream_error_without_message(self, make_relay):
        relay, _ = make_relay(lambda request: httpx.Response(429, json={"error": {"code": 429}}))
        response = _run(relay, body=VALID_BODY)

        assert response.status_code == 429
        assert _error(response) == "Failed to generate speech"

    def test_upstream_non_json_error(self, make_relay):
        relay, _ = make_relay(lambda request: httpx.Response(502, text="Bad Gateway"))
        response = _run(relay, body=VALID_BODY)

        assert response.status_code == 502
        assert _error(response) == "Failed to generate speech"

    def test_no_audio_content(self, make_relay):
        relay, upstream = make_relay(lambda request: httpx.Response(200, json={}))
        response = _run(relay, body=VALID_BODY)

        assert response.status_code == 500
        assert _error(response) == "No audio content received from Google"
        assert upstream.call_count == 1

    def test_invalid_base64(self, make_relay):
        relay, _ = make_relay(lambda request: httpx.Response(200, json={"audioContent": "%%% not base64 %%%"}))
        response = _run(relay, body=VALID_BODY)

        assert response.status_code == 500
        assert _error(response).startswith("Internal server error: invalid audio content")

    def test_success_body_not_json(self, make_relay):
        relay, _ = make_relay(lambda request: httpx.Response(200, text="<html></html>"))
        response = _run(relay, body=VALID_BODY)

        assert response.status_code == 500
        assert _error(response).startswith("Internal server error: ")


class TestTransportFailures:
    """Timeouts and connection errors."""

    def test_timeout_returns_504(self, make_relay):
        def responder(request):
            raise httpx.ReadTimeout("timed out", request=request)

        relay, upstream = make_relay(responder)
        response = _run(relay, body=VALID_BODY)

        assert response.status_code == 504
        assert _error(response) == "Upstream request timed out after 30.0s"
        assert upstream.call_count == 1

    def test_timeout_uses_configured_value(self, make_relay):
        def responder(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        config = RelayConfig(upstream=UpstreamConfig(timeout_s=5.0))
        relay, _ = make_relay(responder, config=config)
        assert _error(_run(relay, body=VALID_BODY)) == "Upstream request timed out after 5.0s"

    def test_connection_error_is_redacted(self, make_relay):
        def responder(request):
            raise httpx.ConnectError(
                f"connection refused (key {request.headers['X-Goog-Api-Key']})", request=request,
            )

        relay, _ = make_relay(responder)
        response = _run(relay, body=VALID_BODY)
        message = _error(response)

        assert response.status_code == 500
        assert message.startswith("Internal server error: ")
        assert API_KEY not in message
        assert "***" in message


class TestRequestRecords:
    """SynthesisRequest and error records."""

    def test_request_requires_text_and_voice(self):
        with pytest.raises(MissingFieldsError):
            SynthesisRequest(text="", voice_id="en-US-Neural2-A")
        with pytest.raises(MissingFieldsError):
            SynthesisRequest(text="Hello world", voice_id="")

    def test_to_body(self):
        request = SynthesisRequest(text="Hello world", voice_id="en-US-Neural2-A", speed=1.5)
        assert request.to_body() == {"text": "Hello world", "voice": "en-US-Neural2-A", "speed": 1.5}

    def test_from_body_string_speed(self):
        request = SynthesisRequest.from_body({"text": "Hello world", "voice": "en-US-Neural2-A", "speed": "1.5"})
        assert request.speed == 1.5

    def test_error_to_dict(self):
        assert TransportError("boom").to_dict() == {"error": "Internal server error: boom"}

    def test_timeout_error_code(self):
        err = UpstreamTimeoutError(30.0)
        assert err.status_code == 504
        assert err.code == ErrorCode.UPSTREAM_TIMEOUT

    def test_health_info_hides_key(self, make_relay):
        relay, _ = make_relay()
        info = relay.health_info()

        assert info["api_key_configured"] is True
        assert info["upstream"] == "https://texttospeech.googleapis.com/v1/text:synthesize"
        assert API_KEY not in json.dumps(info)


class TestSecretNotLogged:
    """The API key never reaches the log stream, whatever the outcome."""

    @pytest.fixture(autouse=True)
    def _restore_logging(self):
        yield
        configure_logging(level=2, force=True)

    @pytest.mark.parametrize("level", [2, 4])
    @pytest.mark.parametrize(
        "responder",
        [
            lambda request: audio_response(),
            lambda request: httpx.Response(403, json={"error": {"code": 403, "message": "denied"}}),
            lambda request: httpx.Response(200, json={}),
        ],
        ids=["success", "upstream_error", "no_audio"],
    )
    def test_key_absent_from_console(self, make_relay, level, responder):
        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=level, force=True)
            relay, upstream = make_relay(responder)
            _run(relay, body=VALID_BODY)

        assert upstream.call_count == 1
        assert "relay_request" in captured.getvalue()
        assert API_KEY not in captured.getvalue()

    def test_key_absent_from_url(self, make_relay):
        relay, upstream = make_relay()
        _run(relay, body=VALID_BODY)
        assert API_KEY not in str(upstream.calls[0].url)
