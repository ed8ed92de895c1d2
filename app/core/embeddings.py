"""OpenAI embeddings for advice retrieval queries.

Stored advice is embedded offline with the same model; queries must match
EMBEDDING_MODEL and EMBEDDING_DIM or vector search silently degrades.
"""

import asyncio

from openai import OpenAI

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def _get_client() -> OpenAI:
    """Get OpenAI client instance."""
    settings = get_settings()
    return OpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.COLLABORATOR_TIMEOUT_SECONDS)


def embed_texts(texts: list[str]) -> list[list[float]]:
    """
    Embed texts with the configured OpenAI model.

    Args:
        texts: Texts to embed

    Returns:
        One vector per text, in input order

    Raises:
        ValueError: If a vector's dimension doesn't match EMBEDDING_DIM
        Exception: If the OpenAI API call fails
    """
    if not texts:
        return []

    settings = get_settings()

    try:
        response = _get_client().embeddings.create(model=settings.EMBEDDING_MODEL, input=texts)
    except Exception as e:
        logger.error(f"Embedding request failed: {e}", extra={"model": settings.EMBEDDING_MODEL})
        raise

    vectors = [item.embedding for item in response.data]
    for i, vector in enumerate(vectors):
        if len(vector) != settings.EMBEDDING_DIM:
            raise ValueError(
                f"Embedding dimension mismatch for text {i}: "
                f"expected {settings.EMBEDDING_DIM}, got {len(vector)}"
            )

    logger.debug(
        f"Embedded {len(vectors)} texts",
        extra={"model": settings.EMBEDDING_MODEL, "count": len(vectors)},
    )
    return vectors


async def embed_query(text: str) -> list[float]:
    """Embed a single retrieval query off the event loop. Raises if the API returns nothing."""
    vectors = await asyncio.to_thread(embed_texts, [text])
    if not vectors:
        raise ValueError("Embedding API returned no vectors for query")
    return vectors[0]
