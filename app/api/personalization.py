"""Personalization API endpoints."""

from fastapi import APIRouter, Query

from app.core.advice_retrieval import count_relevant_content
from app.core.schemas_personalization import (
    PersonalizationRequest,
    PersonalizationResult,
    RelevantContentCount,
)
from app.graphs.personalization_graph import run_personalization

router = APIRouter()


@router.post("/personalization", response_model=PersonalizationResult)
async def personalize(request: PersonalizationRequest) -> PersonalizationResult:
    """
    Rank action steps and advice for a visitor and pick per-phase insights.

    Never fails because of missing content or unavailable collaborators;
    those produce partial or empty results.
    """
    return await run_personalization(request)


@router.get("/personalization/relevant-count", response_model=RelevantContentCount)
async def relevant_count(
    flow: str | None = Query(None, description="Visitor flow (buy, sell, browse)"),
    search: str | None = Query(None, description="Free-text or tag search"),
    agent_id: str | None = Query(None, description="Agent whose content to count"),
) -> RelevantContentCount:
    """
    Count content related to a search.

    When nothing matches exactly the response carries an estimate
    (is_estimate=true) meant only for "relevant content exists" messaging.
    """
    return await count_relevant_content(flow, search=search, agent_id=agent_id)
