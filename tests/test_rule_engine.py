"""Tests for app.core.rule_engine: per-operator and group semantics."""

import pytest

from app.core.rule_engine import (
    evaluate_condition,
    evaluate_group,
    evaluate_rule,
    evaluate_rule_groups,
    parse_number,
)
from app.core.schemas_personalization import ConditionRule, LogicOperator, RuleGroup


def _cond(field: str, operator: str, value, weight: float = 1) -> ConditionRule:
    return ConditionRule(field=field, operator=operator, value=value, weight=weight)


def _group(logic: str, *rules) -> RuleGroup:
    return RuleGroup(logic=logic, rules=list(rules))


# ---------------------------------------------------------------------------
# equals / not_equals
# ---------------------------------------------------------------------------


class TestEquals:
    def test_exact_string(self):
        assert evaluate_condition(_cond("timeline", "equals", "0-3 months"), {"timeline": "0-3 months"})

    def test_string_is_case_sensitive(self):
        assert not evaluate_condition(_cond("flow", "equals", "Buy"), {"flow": "buy"})

    def test_list_means_one_of(self):
        rule = _cond("timeline", "equals", ["0-3 months", "3-6 months"])
        assert evaluate_condition(rule, {"timeline": "3-6 months"})
        assert not evaluate_condition(rule, {"timeline": "12+ months"})

    def test_list_is_case_insensitive(self):
        rule = _cond("propertyType", "equals", ["House", "Condo"])
        assert evaluate_condition(rule, {"propertyType": "condo"})

    def test_not_equals_negates(self):
        rule = _cond("timeline", "not_equals", "0-3 months")
        assert evaluate_condition(rule, {"timeline": "6-12 months"})
        assert not evaluate_condition(rule, {"timeline": "0-3 months"})

    def test_not_equals_with_list(self):
        rule = _cond("propertyType", "not_equals", ["house", "condo"])
        assert evaluate_condition(rule, {"propertyType": "land"})
        assert not evaluate_condition(rule, {"propertyType": "House"})


# ---------------------------------------------------------------------------
# includes
# ---------------------------------------------------------------------------


class TestIncludes:
    def test_string_substring_case_insensitive(self):
        rule = _cond("goals", "includes", "Renovation")
        assert evaluate_condition(rule, {"goals": "planning a kitchen renovation next year"})

    def test_string_not_contained(self):
        rule = _cond("goals", "includes", "renovation")
        assert not evaluate_condition(rule, {"goals": "downsizing"})

    def test_list_matches_any_entry(self):
        rule = _cond("propertyType", "includes", ["house", "condo"])
        assert evaluate_condition(rule, {"propertyType": "Condo/Apartment"})
        assert evaluate_condition(rule, {"propertyType": "HOUSE"})

    def test_list_entry_must_be_whole_word(self):
        rule = _cond("propertyType", "includes", ["house"])
        assert not evaluate_condition(rule, {"propertyType": "Townhouse"})

    def test_list_tolerates_extra_words(self):
        rule = _cond("propertyType", "includes", ["single-family"])
        assert evaluate_condition(rule, {"propertyType": "A single-family home please"})

    def test_empty_string_value_never_matches(self):
        assert not evaluate_condition(_cond("goals", "includes", ""), {"goals": "anything"})

    @pytest.mark.parametrize(
        "answer",
        ["house", "House", "Condo/Apartment", "townhouse", "land", "condo", "Big HOUSE with yard"],
    )
    def test_equals_and_includes_agree_on_lists(self, answer):
        options = ["house", "condo"]
        answers = {"propertyType": answer}
        assert evaluate_condition(_cond("propertyType", "equals", options), answers) == evaluate_condition(
            _cond("propertyType", "includes", options), answers
        )


# ---------------------------------------------------------------------------
# Numeric operators
# ---------------------------------------------------------------------------


class TestNumeric:
    def test_greater_than(self):
        rule = _cond("budget", "greater_than", "500000")
        assert evaluate_condition(rule, {"budget": "600000"})
        assert not evaluate_condition(rule, {"budget": "500000"})

    def test_greater_than_with_currency_formatting(self):
        assert evaluate_condition(_cond("budget", "greater_than", "500000"), {"budget": "$650,000"})

    def test_less_than(self):
        rule = _cond("budget", "less_than", "300000")
        assert evaluate_condition(rule, {"budget": "250000"})
        assert not evaluate_condition(rule, {"budget": "300000"})

    def test_non_numeric_answer_is_false(self):
        assert not evaluate_condition(_cond("budget", "greater_than", "100"), {"budget": "flexible"})
        assert not evaluate_condition(_cond("budget", "less_than", "100"), {"budget": "flexible"})

    def test_list_value_for_comparison_is_false(self):
        assert not evaluate_condition(_cond("budget", "greater_than", ["1", "2"]), {"budget": "5"})

    def test_between_is_inclusive(self):
        rule = _cond("bedrooms", "between", ["2", "4"])
        assert evaluate_condition(rule, {"bedrooms": "2"})
        assert evaluate_condition(rule, {"bedrooms": "3"})
        assert evaluate_condition(rule, {"bedrooms": "4"})
        assert not evaluate_condition(rule, {"bedrooms": "5"})

    @pytest.mark.parametrize("value", [["2"], ["2", "4", "6"], "2-4", ["low", "4"], []])
    def test_malformed_between_is_false(self, value):
        assert not evaluate_condition(_cond("bedrooms", "between", value), {"bedrooms": "3"})


# ---------------------------------------------------------------------------
# Missing answers and unknown operators
# ---------------------------------------------------------------------------


class TestNonMatches:
    @pytest.mark.parametrize(
        "operator,value",
        [
            ("equals", ""),
            ("not_equals", "anything"),
            ("includes", ["house"]),
            ("greater_than", "1"),
            ("less_than", "1"),
            ("between", ["0", "10"]),
        ],
    )
    def test_missing_field_is_non_match(self, operator, value):
        assert not evaluate_condition(_cond("absent", operator, value), {"other": "x"})

    def test_unknown_operator_is_false(self):
        assert not evaluate_condition(_cond("timeline", "starts_with", "0"), {"timeline": "0-3 months"})

    @pytest.mark.parametrize("operator", ["EQUALS", "Equals", " equals", "equals "])
    def test_operator_is_compared_verbatim(self, operator):
        assert not evaluate_condition(_cond("timeline", operator, "asap"), {"timeline": "asap"})


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


class TestGroups:
    @pytest.mark.parametrize("answers", [{}, {"timeline": "0-3 months"}])
    def test_empty_and_is_true(self, answers):
        assert evaluate_group(_group("AND"), answers) is True

    @pytest.mark.parametrize("answers", [{}, {"timeline": "0-3 months"}])
    def test_empty_or_is_false(self, answers):
        assert evaluate_group(_group("OR"), answers) is False

    def test_and_requires_all(self):
        group = _group("AND", _cond("a", "equals", "1"), _cond("b", "equals", "2"))
        assert evaluate_group(group, {"a": "1", "b": "2"})
        assert not evaluate_group(group, {"a": "1", "b": "3"})

    def test_or_requires_any(self):
        group = _group("OR", _cond("a", "equals", "1"), _cond("b", "equals", "2"))
        assert evaluate_group(group, {"b": "2"})
        assert not evaluate_group(group, {"a": "9", "b": "9"})

    def test_missing_field_does_not_abort_or(self):
        group = _group("OR", _cond("missing", "equals", "x"), _cond("b", "equals", "2"))
        assert evaluate_group(group, {"b": "2"})

    def test_nested_groups(self):
        group = _group(
            "AND",
            _cond("flow", "equals", "sell"),
            _group("OR", _cond("timeline", "equals", "0-3 months"), _cond("urgent", "equals", "yes")),
        )
        assert evaluate_rule(group, {"flow": "sell", "urgent": "yes"})
        assert not evaluate_rule(group, {"flow": "sell", "timeline": "12+ months"})

    def test_group_logic_enum(self):
        assert _group("or").logic == LogicOperator.OR

    def test_top_level_groups_are_alternatives(self):
        groups = [
            _group("AND", _cond("flow", "equals", "buy")),
            _group("AND", _cond("flow", "equals", "sell")),
        ]
        assert evaluate_rule_groups(groups, {"flow": "sell"})
        assert not evaluate_rule_groups(groups, {"flow": "browse"})

    def test_no_top_level_groups_is_unconditional(self):
        assert evaluate_rule_groups(None, {})
        assert evaluate_rule_groups([], {})


def test_evaluate_never_raises_on_odd_trees():
    """Any parsed tree against any answers evaluates without raising."""
    odd_rules = [
        _cond("", "", ""),
        _cond("x", "between", "not-a-list"),
        _cond("x", "between", ["a", "b"]),
        _cond("x", "greater_than", ["1"]),
        _cond("x", "less_than", "NaN"),
        _cond("x", "includes", []),
        _cond("x", "equals", []),
        _cond("x", "regex", ".*"),
    ]
    tree = _group("OR", _group("AND", *odd_rules), _group("AND"), _group("OR"), *odd_rules)
    for answers in ({}, {"x": ""}, {"x": "5"}, {"x": "nan"}, {"x": "Some free text"}):
        assert evaluate_rule(tree, answers) in (True, False)


class TestParseNumber:
    def test_plain(self):
        assert parse_number("42") == 42.0

    def test_formatted(self):
        assert parse_number("$1,250,000") == 1250000.0

    def test_invalid(self):
        assert parse_number("about a million") is None
        assert parse_number("") is None
        assert parse_number("nan") is None
