"""
Relay API Routes.

Endpoints:
    POST    /api/generate-speech  - Synthesize speech, returns audio/mpeg
    OPTIONS /api/generate-speech  - CORS pre-flight, 200 with empty body
    *       /api/generate-speech  - Any other method: 405
    GET     /health               - Liveness and configuration status
    GET     /metrics              - Prometheus metrics

Request Flow:
    1. Assign a request id for log correlation (returned as X-Request-Id)
    2. Read the raw JSON body (POST only; unparseable bodies count as empty)
    3. SpeechRelay.handle(method, body)
    4. Convert the RelayResponse into a FastAPI Response

Error bodies are always ``{"error": "<message>"}``.

Example:
    curl -X POST http://localhost:8000/api/generate-speech \\
        -H "Content-Type: application/json" \\
        -d '{"text": "Hello world, this is a test.", "voice": "en-US-Neural2-A", "speed": 1.0}' \\
        --output speech.mp3
"""
from __future__ import annotations

import json
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.exception_handlers import http_exception_handler
from starlette.exceptions import HTTPException as StarletteHTTPException

from voiceover_relay.api.dependencies import get_relay
from voiceover_relay.api.schemas import ErrorResponse, GenerateSpeechRequest, HealthResponse
from voiceover_relay.core.logging import get_logger, set_request_id, warn
from voiceover_relay.core.metrics import metrics
from voiceover_relay.services.relay_service import RelayResponse, SpeechRelay

router = APIRouter()

_LOG = get_logger("voiceover.api")

GENERATE_SPEECH_PATH = "/api/generate-speech"

# Common methods are routed to the relay so it answers 405 itself; any
# other method (TRACE, CONNECT, ...) is caught by method_not_allowed_handler.
RELAY_METHODS = ["POST", "OPTIONS", "GET", "HEAD", "PUT", "PATCH", "DELETE"]

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or invalid fields"},
    405: {"model": ErrorResponse, "description": "Method other than POST"},
    500: {"model": ErrorResponse, "description": "Configuration, payload or internal error"},
    504: {"model": ErrorResponse, "description": "Upstream timeout"},
}


async def _read_json_body(request: Request) -> Any:
    """Decoded JSON body, or None when empty or not JSON."""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        warn(_LOG, "body_not_json", bytes=len(raw))
        return None


def _to_response(result: RelayResponse, request_id: str) -> Response:
    headers = dict(result.headers)
    headers["X-Request-Id"] = request_id
    return Response(
        content=result.content,
        status_code=result.status_code,
        media_type=result.media_type,
        headers=headers,
    )


@router.api_route(
    GENERATE_SPEECH_PATH,
    methods=RELAY_METHODS,
    response_class=Response,
    responses={
        200: {"content": {"audio/mpeg": {}}, "description": "MP3 audio"},
        **_ERROR_RESPONSES,
    },
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": GenerateSpeechRequest.model_json_schema()}},
        },
    },
)
async def generate_speech(request: Request, relay: SpeechRelay = Depends(get_relay)) -> Response:
    """
    Relay a synthesis request to the provider and return MP3 bytes.

    Returns:
        200 audio/mpeg with Content-Length equal to the decoded size, or a
        JSON error with the relay's (or the provider's) status code.
    """
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)

    body = await _read_json_body(request) if request.method == "POST" else None
    result = await relay.handle(request.method, body)
    return _to_response(result, rid)


async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """
    Answer routing-level 405s on the relay path the same way the relay does.

    Registered on the app for StarletteHTTPException; everything else goes
    to FastAPI's default handler.
    """
    if exc.status_code != 405 or request.url.path != GENERATE_SPEECH_PATH:
        return await http_exception_handler(request, exc)

    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)

    provider = request.app.dependency_overrides.get(get_relay, get_relay)
    result = await provider().handle(request.method, None)
    return _to_response(result, rid)


@router.get("/health", response_model=HealthResponse)
def health(relay: SpeechRelay = Depends(get_relay)):
    """
    Health check for load balancers.

    ``api_key_configured`` false means every synthesis request will fail
    with a configuration error until the key is provided.
    """
    return relay.health_info()


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus text exposition of relay metrics."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
