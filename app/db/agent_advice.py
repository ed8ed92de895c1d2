"""Agent advice and story database operations (pgvector-backed)."""

import re
from typing import Any

from app.core.config import get_settings
from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

# Characters that would break a PostgREST or=() filter expression
_FILTER_UNSAFE = re.compile(r"[,(){}%*\\\"]")


def search_agent_advice(
    query_embedding: list[float],
    match_count: int,
    agent_id: str | None = None,
    flow: str | None = None,
    kind: str | None = None,
) -> list[dict[str, Any]]:
    """
    Search advice by vector similarity.

    Flow and kind are structured filters applied inside the RPC, before
    nearest-neighbour ranking.

    Args:
        query_embedding: Query embedding vector
        match_count: Number of neighbours to return
        agent_id: Optional agent filter
        flow: Optional flow filter (buy, sell, browse)
        kind: Optional content kind filter (tip, story)

    Returns:
        Advice rows with a `similarity` in [0, 1], best first

    Raises:
        Exception: If database operation fails
    """
    settings = get_settings()
    supabase = get_supabase()

    try:
        response = supabase.rpc(
            settings.ADVICE_MATCH_RPC,
            {
                "query_embedding": query_embedding,
                "match_count": match_count,
                "filter_agent_id": agent_id,
                "filter_flow": flow,
                "filter_kind": kind,
            },
        ).execute()

        if not response.data:
            logger.info("No matching advice found", extra={"flow": flow})
            return []

        logger.info(
            f"Found {len(response.data)} matching advice rows",
            extra={"match_count": match_count, "flow": flow, "agent_id": agent_id},
        )
        return response.data

    except Exception as e:
        logger.error(f"Failed to search agent advice: {e}")
        raise


def _search_term(search: str) -> str:
    return _FILTER_UNSAFE.sub(" ", search).strip()


def count_agent_advice(
    agent_id: str | None = None,
    flow: str | None = None,
    search: str | None = None,
) -> int:
    """
    Count advice for an agent and flow, optionally matching a text/tag search.

    Args:
        agent_id: Optional agent filter
        flow: Optional flow filter
        search: Optional term matched against title, body and tags

    Returns:
        Exact row count

    Raises:
        Exception: If database operation fails
    """
    settings = get_settings()
    supabase = get_supabase()

    try:
        query = supabase.table(settings.AGENT_ADVICE_TABLE).select("id", count="exact")
        if agent_id:
            query = query.eq("agent_id", agent_id)
        if flow:
            query = query.contains("flow", [flow])

        term = _search_term(search) if search else ""
        if term:
            query = query.or_(f"title.ilike.*{term}*,body.ilike.*{term}*,tags.cs.{{{term}}}")

        response = query.execute()
        return response.count or 0

    except Exception as e:
        logger.error(f"Failed to count agent advice for agent {agent_id}: {e}")
        raise
