"""Personalization graph: ranked content and per-phase insights for one visitor.

3 nodes:
  load_personalization_context → retrieve_candidates → assemble_insights

retrieve_candidates runs the rule-based action step retriever and the
semantic advice retriever concurrently; they share no state. Every failure
degrades to less personalization, never to an error for the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from langgraph.graph import END, StateGraph

from app.core.action_step_retrieval import retrieve_action_steps
from app.core.advice_retrieval import retrieve_advice
from app.core.logging import get_logger, log_with_context
from app.core.phase_assembler import (
    assemble_phase_insights,
    group_stories_by_phase,
    group_tips_by_phase,
)
from app.core.schemas_personalization import (
    Flow,
    Phase,
    PersonalizationRequest,
    PersonalizationResult,
    PhaseInsight,
    RankedCandidate,
    normalize_answers,
    normalize_flow,
)

logger = get_logger(__name__)


# =============================================================================
# State
# =============================================================================


@dataclass
class PersonalizationState:
    """State for one personalization run."""

    request: PersonalizationRequest = field(default_factory=PersonalizationRequest)

    # Normalized input
    flow: Flow | None = None
    answers: dict[str, str] = field(default_factory=dict)

    # Agent config
    phases: list[Phase] = field(default_factory=list)
    story_mappings: dict[str, list[str]] = field(default_factory=dict)

    # Retrieval
    action_steps: list[RankedCandidate] = field(default_factory=list)
    advice: list[RankedCandidate] = field(default_factory=list)

    # Assembly
    phase_insights: dict[str, PhaseInsight] = field(default_factory=dict)

    # Degradations, for logging
    errors: list[str] = field(default_factory=list)


# =============================================================================
# Nodes
# =============================================================================


def load_personalization_context(state: PersonalizationState) -> dict[str, Any]:
    """Normalize input and load the agent's phases and story mappings."""
    from app.db.agent_config import get_agent_config, phases_for_flow, story_mappings_for_flow

    request = state.request
    flow = normalize_flow(request.flow)
    errors = list(state.errors)

    if request.flow and flow is None:
        errors.append(f"unknown flow '{request.flow}', flow filter disabled")

    phases = list(request.phases or [])
    story_mappings = dict(request.story_mappings or {})

    needs_config = request.phases is None or request.story_mappings is None
    if needs_config and request.agent_id and flow:
        try:
            config = get_agent_config(request.agent_id)
            if request.phases is None:
                phases = [Phase.model_validate(p) for p in phases_for_flow(config, flow.value)]
            if request.story_mappings is None:
                story_mappings = story_mappings_for_flow(config, flow.value)
        except Exception as e:
            errors.append(f"agent config unavailable: {e}")

    return {
        "flow": flow,
        "answers": normalize_answers(request.answers),
        "phases": phases,
        "story_mappings": story_mappings,
        "errors": errors,
    }


async def retrieve_candidates(state: PersonalizationState) -> dict[str, Any]:
    """Run both retrievers concurrently."""
    request = state.request
    errors = list(state.errors)

    results = await asyncio.gather(
        retrieve_action_steps(
            state.flow,
            state.answers,
            limit=request.limit,
            agent_id=request.agent_id,
        ),
        retrieve_advice(
            state.flow,
            state.answers,
            top_k=request.top_k,
            agent_id=request.agent_id,
            query_text=request.query_text,
        ),
        return_exceptions=True,
    )

    action_steps, advice = results
    if isinstance(action_steps, Exception):
        errors.append(f"action step retrieval failed: {action_steps}")
        action_steps = []
    if isinstance(advice, Exception):
        errors.append(f"advice retrieval failed: {advice}")
        advice = []

    return {
        "action_steps": action_steps,
        "advice": advice,
        "errors": errors,
    }


def assemble_insights(state: PersonalizationState) -> dict[str, Any]:
    """Reduce retrieved content to one story and one tip per phase."""
    ranked = state.advice + state.action_steps
    phase_insights = assemble_phase_insights(
        group_stories_by_phase(ranked, state.story_mappings),
        group_tips_by_phase(state.advice, state.story_mappings),
        phases=state.phases,
    )
    return {"phase_insights": phase_insights}


# =============================================================================
# Graph definition
# =============================================================================


def _build_graph() -> StateGraph:
    """Build the personalization graph."""
    graph = StateGraph(PersonalizationState)

    graph.add_node("load_personalization_context", load_personalization_context)
    graph.add_node("retrieve_candidates", retrieve_candidates)
    graph.add_node("assemble_insights", assemble_insights)

    graph.set_entry_point("load_personalization_context")
    graph.add_edge("load_personalization_context", "retrieve_candidates")
    graph.add_edge("retrieve_candidates", "assemble_insights")
    graph.add_edge("assemble_insights", END)

    return graph


# Graph instance
personalization_graph = _build_graph().compile()


async def run_personalization(request: PersonalizationRequest) -> PersonalizationResult:
    """
    Personalize content for one visitor.

    Args:
        request: Flow, answers and retrieval limits

    Returns:
        Ranked action steps and advice plus per-phase insights. Partial or
        empty results are normal when collaborators are unavailable.
    """
    final_state = await personalization_graph.ainvoke(PersonalizationState(request=request))

    errors = final_state.get("errors") or []
    if errors:
        log_with_context(
            logger,
            logging.WARNING,
            "Personalization degraded",
            request_id=request.request_id,
            errors="; ".join(errors),
        )

    result = PersonalizationResult(
        flow=final_state.get("flow"),
        action_steps=final_state.get("action_steps") or [],
        advice=final_state.get("advice") or [],
        phase_insights=final_state.get("phase_insights") or {},
    )

    log_with_context(
        logger,
        logging.INFO,
        "Personalization complete",
        request_id=request.request_id,
        action_steps=len(result.action_steps),
        advice=len(result.advice),
        phases=len(result.phase_insights),
    )
    return result
