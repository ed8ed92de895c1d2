"""FastAPI application for the advice personalization engine.

Serves liveness and readiness checks plus the v1 personalization routes.
"""

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.api import router as api_router
from app.core.config import get_settings
from app.core.logging import get_logger, log_with_context

logger = get_logger(__name__)

app = FastAPI(
    title="Advice Personalization Engine",
    description="Rule- and vector-based matching of authored advice, stories and action steps",
    version="0.1.0",
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Liveness: the process is serving requests."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


@app.get("/health/ready")
async def readiness_check() -> JSONResponse:
    """Readiness: Supabase and OpenAI settings are present."""
    try:
        settings = get_settings()
    except ValidationError as e:
        missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        log_with_context(logger, logging.ERROR, "Settings incomplete", missing=",".join(missing))
        return JSONResponse(content={"status": "unavailable", "missing": missing}, status_code=503)

    return JSONResponse(content={"status": "ok", "env": settings.ENGINE_ENV}, status_code=200)


app.include_router(api_router, prefix="/v1", tags=["v1"])
