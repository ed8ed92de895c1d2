"""Per-agent personalization config: timeline phases and story-to-phase mappings."""

from typing import Any

from app.core.config import get_settings
from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

# Flows that share another flow's story mappings
STORY_MAPPING_FLOW_ALIASES = {"browse": "buy"}


def get_agent_config(agent_id: str) -> dict[str, Any] | None:
    """
    Get an agent's personalization config row.

    Args:
        agent_id: Agent identifier

    Returns:
        Config row or None if the agent has none

    Raises:
        Exception: If database operation fails
    """
    settings = get_settings()
    supabase = get_supabase()

    try:
        response = (
            supabase.table(settings.AGENT_CONFIG_TABLE)
            .select("agent_id, phases, story_mappings")
            .eq("agent_id", agent_id)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(f"Failed to get config for agent {agent_id}: {e}")
        raise


def phases_for_flow(config: dict[str, Any] | None, flow: str) -> list[dict[str, Any]]:
    """Phase definitions ({id, order, name}) configured for one flow."""
    phases = ((config or {}).get("phases") or {}).get(flow) or []
    return [p for p in phases if isinstance(p, dict) and p.get("id")]


def story_mappings_for_flow(config: dict[str, Any] | None, flow: str) -> dict[str, list[str]]:
    """Phase id -> content ids the agent pinned to that phase for one flow."""
    mappings = (config or {}).get("story_mappings") or {}
    flow_mappings = mappings.get(flow) or mappings.get(STORY_MAPPING_FLOW_ALIASES.get(flow, "")) or {}
    return {
        str(phase_id): [str(content_id) for content_id in ids or []]
        for phase_id, ids in flow_mappings.items()
    }
