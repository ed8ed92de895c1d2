"""Rule-based retrieval of action steps.

Action steps are ranked purely by how well their rules match the visitor's
answers. No embeddings are involved:

  flow filter → score (match_scorer) → drop non-applicable → rank → truncate

Ranking is deterministic for identical inputs:
  score desc, defaultPriority asc (missing last), matched conditions desc,
  corpus order.
"""

import asyncio
import math

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.match_scorer import score_candidate
from app.core.schemas_personalization import (
    Candidate,
    ContentSource,
    Flow,
    RankedCandidate,
    normalize_answers,
    normalize_flow,
)

logger = get_logger(__name__)

DEFAULT_LIMIT = 5


def _effective_limit(limit: int | None, default: int = DEFAULT_LIMIT) -> int:
    return limit if limit and limit > 0 else default


def rank_action_steps(
    corpus: list[Candidate],
    flow: Flow | str | None,
    answers: dict[str, str],
    limit: int | None = DEFAULT_LIMIT,
) -> list[RankedCandidate]:
    """
    Rank an action step corpus against a visitor's answers.

    Args:
        corpus: Candidate action steps, in storage order
        flow: Visitor flow; unknown values disable the flow filter
        answers: Flat answer map
        limit: Max steps to return (<= 0 or None means DEFAULT_LIMIT)

    Returns:
        Ranked candidates with score = weighted rule match
    """
    flow = normalize_flow(flow)
    answers = normalize_answers(answers)

    scored: list[tuple[int, Candidate, float, list[str]]] = []
    for index, step in enumerate(corpus):
        result = score_candidate(step, answers, flow)
        if not result.applicable:
            continue
        scored.append((index, step, result.score, result.matched_conditions))

    scored.sort(
        key=lambda item: (
            -item[2],
            item[1].default_priority if item[1].default_priority is not None else math.inf,
            -len(item[3]),
            item[0],
        )
    )

    return [
        RankedCandidate(
            candidate=step,
            score=score,
            matched_conditions=matched,
            source=ContentSource.RULES,
        )
        for _, step, score, matched in scored[: _effective_limit(limit)]
    ]


async def retrieve_action_steps(
    flow: Flow | str | None,
    answers: dict[str, str],
    limit: int | None = None,
    agent_id: str | None = None,
) -> list[RankedCandidate]:
    """
    Fetch the action step corpus and rank it.

    Storage failures and empty corpora both yield an empty list; having no
    action steps is a valid outcome.
    """
    from app.db.action_steps import list_action_steps
    from app.db.content_documents import parse_candidates

    settings = get_settings()

    try:
        rows = await asyncio.to_thread(list_action_steps, agent_id)
    except Exception as e:
        logger.warning(f"Action step fetch failed, continuing without steps: {e}")
        return []

    corpus = parse_candidates(rows, source=settings.ACTION_STEPS_TABLE)
    if not corpus:
        return []

    ranked = rank_action_steps(
        corpus,
        flow,
        answers,
        _effective_limit(limit, settings.DEFAULT_ACTION_STEP_LIMIT),
    )

    logger.info(
        f"Ranked {len(ranked)} of {len(corpus)} action steps",
        extra={"flow": flow, "agent_id": agent_id},
    )
    return ranked
