"""Per-phase insight assembly.

Distills ranked content into at most one story and one tip per timeline
phase. Every phase key seen in the inputs appears in the output, even when
it ends up with neither, so callers can tell the phase was considered.
"""

from app.core.schemas_personalization import Phase, PhaseInsight, RankedCandidate

# Legibility band for tips, in characters
TIP_MIN_CHARS = 50
TIP_MAX_CHARS = 200

# Tag keyword -> phases, for stories with no mapping and no declared phases
TAG_PHASE_KEYWORDS: dict[str, list[str]] = {
    "pre-approval": ["financial-prep"],
    "mortgage": ["financial-prep"],
    "financing": ["financial-prep"],
    "agent": ["find-agent"],
    "house hunting": ["house-hunting"],
    "search": ["house-hunting"],
    "offer": ["make-offer"],
    "negotiation": ["make-offer"],
    "inspection": ["under-contract", "inspection"],
    "appraisal": ["under-contract"],
    "closing": ["closing"],
    "move": ["move-in", "post-closing"],
}


def select_best_story(candidates: list[RankedCandidate]) -> RankedCandidate | None:
    """Most specifically matched story; ties keep input order."""
    if not candidates:
        return None
    return sorted(candidates, key=lambda c: len(c.matched_conditions), reverse=True)[0]


def select_best_tip(tips: list[str]) -> str | None:
    """First tip within the legibility band, else the first tip."""
    if not tips:
        return None
    for tip in tips:
        if TIP_MIN_CHARS <= len(tip) <= TIP_MAX_CHARS:
            return tip
    return tips[0]


def _phases_of(ranked: RankedCandidate, story_mappings: dict[str, list[str]]) -> list[str]:
    """Phases a candidate belongs to: pinned via mapping or self-declared."""
    phase_ids = [
        phase_id
        for phase_id, content_ids in story_mappings.items()
        if ranked.candidate.id in content_ids
    ]
    for phase_id in ranked.candidate.phases:
        if phase_id not in phase_ids:
            phase_ids.append(phase_id)
    return phase_ids


def infer_phases_from_tags(tags: list[str]) -> list[str]:
    """Phases implied by tag keywords (substring, case-insensitive), deduplicated."""
    lower_tags = [tag.lower() for tag in tags]
    phase_ids: list[str] = []
    for keyword, mapped in TAG_PHASE_KEYWORDS.items():
        if any(keyword in tag for tag in lower_tags):
            phase_ids.extend(p for p in mapped if p not in phase_ids)
    return phase_ids


def group_stories_by_phase(
    ranked: list[RankedCandidate],
    story_mappings: dict[str, list[str]] | None = None,
) -> dict[str, list[RankedCandidate]]:
    """Story-kind candidates per phase, in ranked order.

    Every mapped phase gets a key, even if none of its stories were retrieved.
    A story placed by neither mapping nor its own phases falls back to
    infer_phases_from_tags.
    """
    story_mappings = story_mappings or {}
    by_phase: dict[str, list[RankedCandidate]] = {phase_id: [] for phase_id in story_mappings}
    for item in ranked:
        if not item.candidate.is_story:
            continue
        phase_ids = _phases_of(item, story_mappings) or infer_phases_from_tags(item.candidate.tags)
        for phase_id in phase_ids:
            by_phase.setdefault(phase_id, []).append(item)
    return by_phase


def group_tips_by_phase(
    ranked: list[RankedCandidate],
    story_mappings: dict[str, list[str]] | None = None,
) -> dict[str, list[str]]:
    """Non-story advice bodies per phase, in ranked order."""
    story_mappings = story_mappings or {}
    by_phase: dict[str, list[str]] = {}
    for item in ranked:
        if item.candidate.is_story:
            continue
        body = item.candidate.body.strip()
        if not body:
            continue
        for phase_id in _phases_of(item, story_mappings):
            by_phase.setdefault(phase_id, []).append(body)
    return by_phase


def assemble_phase_insights(
    stories_by_phase: dict[str, list[RankedCandidate]],
    tips_by_phase: dict[str, list[str]],
    phases: list[Phase] | None = None,
) -> dict[str, PhaseInsight]:
    """
    Build one PhaseInsight per phase.

    Args:
        stories_by_phase: Phase id -> ranked story candidates
        tips_by_phase: Phase id -> tip texts
        phases: Optional phase config; orders the output and adds its phases

    Returns:
        Phase id -> insight, for every phase in either input (and in `phases`)
    """
    keys: list[str] = []
    for phase in sorted(phases or [], key=lambda p: p.order):
        keys.append(phase.id)
    for phase_id in list(stories_by_phase) + list(tips_by_phase):
        if phase_id not in keys:
            keys.append(phase_id)

    return {
        phase_id: PhaseInsight(
            story=select_best_story(stories_by_phase.get(phase_id, [])),
            tip=select_best_tip(tips_by_phase.get(phase_id, [])),
        )
        for phase_id in keys
    }
