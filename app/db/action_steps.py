"""Action step database operations."""

from typing import Any

from app.core.config import get_settings
from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def list_action_steps(agent_id: str | None = None, limit: int | None = None) -> list[dict[str, Any]]:
    """
    Fetch authored action steps.

    Rule matching can't run in the database, so the whole (bounded) set is
    fetched and filtered in code.

    Args:
        agent_id: Optional agent to scope steps to
        limit: Max rows (defaults to ACTION_STEP_FETCH_LIMIT)

    Returns:
        Raw action step rows

    Raises:
        Exception: If database operation fails
    """
    settings = get_settings()
    supabase = get_supabase()

    try:
        query = supabase.table(settings.ACTION_STEPS_TABLE).select("*")
        if agent_id:
            query = query.eq("agent_id", agent_id)

        response = query.limit(limit or settings.ACTION_STEP_FETCH_LIMIT).execute()
        rows = response.data or []

        logger.info(
            f"Fetched {len(rows)} action steps",
            extra={"agent_id": agent_id, "count": len(rows)},
        )
        return rows

    except Exception as e:
        logger.error(f"Failed to list action steps for agent {agent_id}: {e}")
        raise
