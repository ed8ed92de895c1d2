"""Rule evaluation for content applicability.

Pure and total: evaluation never raises for any parsed rule tree and any
flat answer map. A condition whose field has no answer is a non-match, and a
malformed condition (unknown operator, bad `between` bounds, non-numeric
comparison) is simply False. Neither aborts the surrounding group.
"""

import math
import re

from app.core.schemas_personalization import (
    ConditionRule,
    LogicOperator,
    MatchOperator,
    RuleGroup,
)

_NUMBER_NOISE = re.compile(r"[,$\s]")


def parse_number(raw: str) -> float | None:
    """Parse "500000", "$500,000" or "3.5" into a float. None if not numeric."""
    if raw is None:
        return None
    try:
        number = float(_NUMBER_NOISE.sub("", str(raw)))
    except ValueError:
        return None
    return None if math.isnan(number) else number


def _matches_any(answer: str, options: list[str]) -> bool:
    """Case-insensitive "one of" check.

    An option matches when it equals the answer or appears as a whole word
    inside it, so ["house", "condo"] matches "Condo/Apartment".
    """
    answer = answer.strip().lower()
    for option in options:
        option = option.strip().lower()
        if not option:
            continue
        if option == answer:
            return True
        if re.search(rf"(?<![a-z0-9]){re.escape(option)}(?![a-z0-9])", answer):
            return True
    return False


def _equals(answer: str, value: str | list[str]) -> bool:
    if isinstance(value, list):
        return _matches_any(answer, value)
    return answer == value


def _includes(answer: str, value: str | list[str]) -> bool:
    if isinstance(value, list):
        return _matches_any(answer, value)
    if not value:
        return False
    return value.lower() in answer.lower()


def _compare(answer: str, value: str | list[str], greater: bool) -> bool:
    if isinstance(value, list):
        return False
    left = parse_number(answer)
    right = parse_number(value)
    if left is None or right is None:
        return False
    return left > right if greater else left < right


def _between(answer: str, value: str | list[str]) -> bool:
    if not isinstance(value, list) or len(value) != 2:
        return False
    number = parse_number(answer)
    low = parse_number(value[0])
    high = parse_number(value[1])
    if number is None or low is None or high is None:
        return False
    return low <= number <= high


def evaluate_condition(rule: ConditionRule, answers: dict[str, str]) -> bool:
    """Evaluate one leaf condition."""
    answer = answers.get(rule.field)
    if answer is None or answer == "":
        return False

    # Stored operators are compared verbatim; "EQUALS" is not "equals"
    operator = rule.operator

    if operator == MatchOperator.EQUALS.value:
        return _equals(answer, rule.value)
    if operator == MatchOperator.NOT_EQUALS.value:
        return not _equals(answer, rule.value)
    if operator == MatchOperator.INCLUDES.value:
        return _includes(answer, rule.value)
    if operator == MatchOperator.GREATER_THAN.value:
        return _compare(answer, rule.value, greater=True)
    if operator == MatchOperator.LESS_THAN.value:
        return _compare(answer, rule.value, greater=False)
    if operator == MatchOperator.BETWEEN.value:
        return _between(answer, rule.value)

    return False


def evaluate_group(group: RuleGroup, answers: dict[str, str]) -> bool:
    """Evaluate a group with short-circuiting.

    Empty AND is vacuously True (no constraint); empty OR is False.
    """
    if group.logic == LogicOperator.AND:
        return all(evaluate_rule(rule, answers) for rule in group.rules)
    return any(evaluate_rule(rule, answers) for rule in group.rules)


def evaluate_rule(rule: ConditionRule | RuleGroup, answers: dict[str, str]) -> bool:
    """Evaluate any rule node against flat answers."""
    if isinstance(rule, RuleGroup):
        return evaluate_group(rule, answers)
    return evaluate_condition(rule, answers)


def evaluate_rule_groups(groups: list[RuleGroup] | None, answers: dict[str, str]) -> bool:
    """Top-level groups are alternatives: True if any group holds.

    No groups at all means the content is unconditional.
    """
    if not groups:
        return True
    return any(evaluate_group(group, answers) for group in groups)
