"""Weighted match scoring for rule groups.

A satisfied leaf contributes its weight, but only inside groups that hold:
a group that evaluates False contributes nothing, however many of its leaves
matched. Top-level groups are alternative scenarios, so the final score is
the best single group, not a sum.

minMatchScore is a fraction of the winning group's own leaf-weight budget:
excluded when score < minMatchScore * total_possible_weight(winning group).
"""

from dataclasses import dataclass

from app.core.rule_engine import evaluate_condition, evaluate_group
from app.core.schemas_personalization import (
    Candidate,
    Flow,
    MatchResult,
    RuleGroup,
)


@dataclass(frozen=True)
class GroupScore:
    """Score of one rule group."""

    holds: bool
    score: float = 0.0
    matched_conditions: tuple[str, ...] = ()


def total_possible_weight(group: RuleGroup) -> float:
    """Sum of all leaf weights in a group, nested groups included."""
    total = 0.0
    for rule in group.rules:
        if isinstance(rule, RuleGroup):
            total += total_possible_weight(rule)
        else:
            total += rule.weight
    return total


def score_group(group: RuleGroup, answers: dict[str, str]) -> GroupScore:
    """Score one group, recursing into nested groups."""
    if not evaluate_group(group, answers):
        return GroupScore(holds=False)

    score = 0.0
    matched: list[str] = []
    for rule in group.rules:
        if isinstance(rule, RuleGroup):
            nested = score_group(rule, answers)
            score += nested.score
            matched.extend(nested.matched_conditions)
        elif evaluate_condition(rule, answers):
            score += rule.weight
            matched.append(rule.describe())

    return GroupScore(holds=True, score=score, matched_conditions=tuple(matched))


def _format_score(score: float) -> str:
    return f"{score:g}"


def score_rule_groups(
    rule_groups: list[RuleGroup] | None,
    answers: dict[str, str],
    candidate_id: str = "",
    min_match_score: float | None = None,
) -> MatchResult:
    """
    Score a candidate's top-level rule groups against flat answers.

    Args:
        rule_groups: Top-level groups (OR'd). None or empty means unconditional.
        answers: Flat answer map
        candidate_id: Id copied into the result
        min_match_score: Optional fraction of the winning group's weight budget

    Returns:
        MatchResult. `matched` is score > 0; `applicable` is whether the
        candidate passes its rules and threshold.
    """
    if not rule_groups:
        return MatchResult(
            candidate_id=candidate_id,
            applicable=True,
            reason="Universal content",
        )

    winner: GroupScore | None = None
    winning_group: RuleGroup | None = None
    for group in rule_groups:
        result = score_group(group, answers)
        if not result.holds:
            continue
        # First group wins ties
        if winner is None or result.score > winner.score:
            winner = result
            winning_group = group

    if winner is None or winning_group is None:
        return MatchResult(
            candidate_id=candidate_id,
            reason="No rule group matched",
        )

    budget = total_possible_weight(winning_group)
    result = MatchResult(
        candidate_id=candidate_id,
        score=winner.score,
        matched=winner.score > 0,
        applicable=True,
        matched_conditions=list(winner.matched_conditions),
        total_possible_weight=budget,
        reason=f"Rules matched with score {_format_score(winner.score)}",
    )

    if min_match_score is not None and winner.score < min_match_score * budget:
        result.applicable = False
        result.reason = (
            f"Match score {_format_score(winner.score)} below threshold "
            f"{_format_score(min_match_score * budget)}"
        )

    return result


def score_candidate(
    candidate: Candidate,
    answers: dict[str, str],
    flow: Flow | None = None,
) -> MatchResult:
    """Apply the flow hard filter, then score the candidate's rules."""
    when = candidate.applicable_when
    if not when.allows_flow(flow):
        return MatchResult(
            candidate_id=candidate.id,
            reason=f"Flow mismatch: content is for {', '.join(when.flow or [])}",
        )

    return score_rule_groups(
        when.rule_groups,
        answers,
        candidate_id=candidate.id,
        min_match_score=when.min_match_score,
    )
