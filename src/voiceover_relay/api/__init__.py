"""
FastAPI REST API Layer for voiceover-relay.

    - routes.py: /api/generate-speech, /health, /metrics
    - schemas.py: Request/response Pydantic models
    - dependencies.py: Settings and relay providers
"""
