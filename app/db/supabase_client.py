"""Supabase client shared by the content and agent config adapters."""

from functools import lru_cache

from supabase import Client, create_client

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get the Supabase client (cached singleton).

    The service role key is required: advice search goes through an RPC and
    agent config rows are not exposed to anonymous clients.

    Raises:
        RuntimeError: If the client cannot be created
    """
    settings = get_settings()
    try:
        client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e

    logger.info("Supabase client initialized", extra={"url": settings.SUPABASE_URL})
    return client
