"""Parsing of stored content rows into Candidate models."""

from typing import Any

from pydantic import ValidationError

from app.core.logging import get_logger
from app.core.schemas_personalization import Candidate

logger = get_logger(__name__)


def parse_candidate_rows(
    rows: list[dict[str, Any]], source: str
) -> list[tuple[dict[str, Any], Candidate]]:
    """
    Parse stored rows, skipping any that fail validation.

    Each candidate stays paired with its raw row, so row-only columns such as
    a vector search `similarity` can be read without re-joining on an id.

    Args:
        rows: Raw rows from storage or the vector search RPC
        source: Table or RPC name, for log context

    Returns:
        (row, candidate) pairs in row order
    """
    parsed: list[tuple[dict[str, Any], Candidate]] = []
    for row in rows:
        try:
            parsed.append((row, Candidate.model_validate(row)))
        except ValidationError as e:
            logger.warning(
                f"Skipping malformed content document from {source}: {e.error_count()} errors",
                extra={"source": source, "row_id": str(row.get("id", "")) if isinstance(row, dict) else ""},
            )
    return parsed


def parse_candidates(rows: list[dict[str, Any]], source: str) -> list[Candidate]:
    """Parse stored rows into candidates, skipping malformed ones."""
    return [candidate for _, candidate in parse_candidate_rows(rows, source)]
