"""
FastAPI Application Entry Point.

Usage:
    # Run with uvicorn
    uvicorn voiceover_relay.main:app --host 0.0.0.0 --port 8000

    # Or the installed script (VOICEOVER_HOST / VOICEOVER_PORT)
    voiceover-relay

The provider key must be exported before requests arrive:
    export GOOGLE_CLOUD_API_KEY=...
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from voiceover_relay import __version__
from voiceover_relay.api.routes import method_not_allowed_handler, router
from voiceover_relay.core.logging import configure_logging, get_logger, info, warn


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Configures logging, registers the relay router and logs whether the
    provider key is present (a missing key is reported per request, not
    fatal at startup).
    """
    configure_logging()
    log = get_logger("voiceover.main")

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        from voiceover_relay.api.dependencies import get_relay

        relay = get_relay()
        if relay.api_key() is None:
            warn(log, "api_key_missing", env=relay.config.upstream.api_key_env)
        info(log, "relay_ready", upstream=relay.config.upstream.synthesize_url,
             timeout_s=relay.config.upstream.timeout_s)
        yield

    app = FastAPI(title="voiceover-relay", version=__version__, lifespan=lifespan)
    app.include_router(router)
    app.add_exception_handler(StarletteHTTPException, method_not_allowed_handler)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run(
        "voiceover_relay.main:app",
        host=os.getenv("VOICEOVER_HOST", "127.0.0.1"),
        port=int(os.getenv("VOICEOVER_PORT", "8000")),
        log_config=None,
    )
