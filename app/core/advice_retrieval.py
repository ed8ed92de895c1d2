"""Semantic retrieval of advice and stories, gated by applicability rules.

Pipeline: build query → embed → vector search (flow filtered server-side)
→ rule gate → rank by similarity → truncate.

Rules are a hard gate here, not a ranking signal: a neighbour that fails its
rule groups is dropped however close it is, and survivors keep the vector
store's similarity as their score, unmodified.

The relevant-content count further down is a separate UX affordance. It may
return an estimate and never produces ranked candidates.
"""

from __future__ import annotations

import asyncio
import math
from typing import Any

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.match_scorer import score_candidate
from app.core.schemas_personalization import (
    ContentSource,
    Flow,
    RankedCandidate,
    RelevantContentCount,
    normalize_answers,
    normalize_flow,
)

logger = get_logger(__name__)

DEFAULT_TOP_K = 5

# Relevant-content estimate: ~30% of the flow's content, between 1 and 5
ESTIMATE_FRACTION = 0.3
ESTIMATE_MIN = 1
ESTIMATE_MAX = 5


def build_query_text(flow: Flow | None, answers: dict[str, str]) -> str:
    """Flow plus the visitor's answers, as one retrieval query."""
    parts = []
    if flow is not None:
        parts.append(f"{flow.value} flow")
    parts.extend(f"{key}: {value}" for key, value in answers.items() if value)
    return "\n".join(parts)


def _similarity(row: dict[str, Any]) -> float:
    try:
        return float(row.get("similarity") or 0.0)
    except (TypeError, ValueError):
        return 0.0


def gate_and_rank_neighbors(
    rows: list[dict[str, Any]],
    flow: Flow | str | None,
    answers: dict[str, str],
    top_k: int | None = DEFAULT_TOP_K,
) -> list[RankedCandidate]:
    """
    Apply the rule gate to vector search neighbours and rank by similarity.

    Args:
        rows: Neighbour rows (candidate columns plus `similarity`)
        flow: Visitor flow
        answers: Flat answer map
        top_k: Max results (<= 0 or None means DEFAULT_TOP_K)

    Returns:
        Applicable candidates, most similar first
    """
    from app.db.content_documents import parse_candidate_rows

    flow = normalize_flow(flow)
    answers = normalize_answers(answers)
    top_k = top_k if top_k and top_k > 0 else DEFAULT_TOP_K

    gated: list[RankedCandidate] = []
    for row, candidate in parse_candidate_rows(rows, source="advice_neighbors"):
        result = score_candidate(candidate, answers, flow)
        if not result.applicable:
            logger.debug(f"Dropped advice {candidate.id}: {result.reason}")
            continue
        gated.append(
            RankedCandidate(
                candidate=candidate,
                score=_similarity(row),
                matched_conditions=result.matched_conditions,
                source=ContentSource.SEMANTIC,
            )
        )

    # Stable: equal similarities keep vector store order
    gated.sort(key=lambda ranked: ranked.score, reverse=True)
    return gated[:top_k]


async def retrieve_advice(
    flow: Flow | str | None,
    answers: dict[str, str],
    top_k: int | None = None,
    agent_id: str | None = None,
    query_text: str | None = None,
    kind: str | None = None,
    timeout: float | None = None,
) -> list[RankedCandidate]:
    """
    Retrieve advice semantically close to the visitor's situation.

    Args:
        flow: Visitor flow; also sent as the vector store's structured filter
        answers: Flat answer map
        top_k: Max results (defaults to DEFAULT_ADVICE_TOP_K)
        agent_id: Optional agent scope
        query_text: Overrides the query built from flow + answers
        kind: Optional content kind filter (tip, story)
        timeout: Seconds per collaborator call (defaults to COLLABORATOR_TIMEOUT_SECONDS)

    Returns:
        Ranked advice; empty when embedding or vector search fails or times out
    """
    from app.core.embeddings import embed_query
    from app.db.agent_advice import search_agent_advice

    settings = get_settings()
    flow = normalize_flow(flow)
    answers = normalize_answers(answers)
    top_k = top_k if top_k and top_k > 0 else settings.DEFAULT_ADVICE_TOP_K
    timeout = timeout if timeout and timeout > 0 else settings.COLLABORATOR_TIMEOUT_SECONDS

    query = query_text or build_query_text(flow, answers)
    if not query.strip():
        logger.info("No query text for advice retrieval, skipping")
        return []

    try:
        embedding = await asyncio.wait_for(embed_query(query), timeout=timeout)
    except Exception as e:
        logger.warning(f"Advice query embedding failed: {type(e).__name__}: {e}")
        return []

    try:
        rows = await asyncio.wait_for(
            asyncio.to_thread(
                search_agent_advice,
                embedding,
                top_k * settings.ADVICE_OVERFETCH_FACTOR,
                agent_id,
                flow.value if flow else None,
                kind,
            ),
            timeout=timeout,
        )
    except Exception as e:
        logger.warning(f"Advice vector search failed: {type(e).__name__}: {e}")
        return []

    ranked = gate_and_rank_neighbors(rows, flow, answers, top_k)

    logger.info(
        f"Advice retrieval: {len(rows)} neighbours, {len(ranked)} after rule gate",
        extra={"flow": flow.value if flow else None, "agent_id": agent_id},
    )
    return ranked


# =============================================================================
# Relevant-content count (UX affordance, not retrieval)
# =============================================================================


def estimate_relevant_count(total: int, search: str | None = None) -> RelevantContentCount:
    """
    Heuristic count shown when a search has no exact matches.

    Roughly 30% of the flow's content, clamped to [1, 5]. A flow with no
    content at all gets 0.
    """
    if total <= 0:
        return RelevantContentCount(count=0, is_estimate=True, search=search)

    count = min(max(ESTIMATE_MIN, math.floor(total * ESTIMATE_FRACTION)), ESTIMATE_MAX)
    return RelevantContentCount(count=count, is_estimate=True, search=search)


async def count_relevant_content(
    flow: Flow | str | None,
    search: str | None = None,
    agent_id: str | None = None,
) -> RelevantContentCount:
    """
    Count content related to a search for a flow.

    Exact text/tag matches are returned as-is. With no exact matches, falls
    back to estimate_relevant_count over the flow's total content. Storage
    failures yield a zero estimate.
    """
    from app.db.agent_advice import count_agent_advice

    flow = normalize_flow(flow)
    flow_value = flow.value if flow else None

    try:
        if search and search.strip():
            exact = await asyncio.to_thread(count_agent_advice, agent_id, flow_value, search)
            if exact > 0:
                return RelevantContentCount(count=exact, is_estimate=False, search=search)

        total = await asyncio.to_thread(count_agent_advice, agent_id, flow_value)
    except Exception as e:
        logger.warning(f"Relevant content count failed: {e}")
        return RelevantContentCount(count=0, is_estimate=True, search=search)

    if not search or not search.strip():
        return RelevantContentCount(count=total, is_estimate=False, search=None)

    return estimate_relevant_count(total, search)
