"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import personalization

router = APIRouter()

# Personalization: ranked content and per-phase insights
router.include_router(personalization.router, tags=["personalization"])
