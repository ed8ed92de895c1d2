"""Tests for weighted match scoring."""

from app.core.match_scorer import score_candidate, score_group, score_rule_groups, total_possible_weight
from app.core.schemas_personalization import Candidate, ConditionRule, Flow, RuleGroup


def _cond(field, operator, value, weight=1):
    return ConditionRule(field=field, operator=operator, value=value, weight=weight)


def _group(logic, *rules):
    return RuleGroup(logic=logic, rules=list(rules))


URGENT_HOUSE_GROUP = _group(
    "AND",
    _cond("timeline", "equals", "0-3 months", weight=3),
    _cond("propertyType", "includes", ["house", "condo"], weight=1),
)


class TestScenarios:
    def test_all_conditions_satisfied(self):
        result = score_rule_groups(
            [URGENT_HOUSE_GROUP],
            {"timeline": "0-3 months", "propertyType": "Condo/Apartment"},
            candidate_id="step-1",
        )

        assert result.candidate_id == "step-1"
        assert result.score == 4
        assert result.matched is True
        assert result.applicable is True
        assert len(result.matched_conditions) == 2
        assert result.total_possible_weight == 4

    def test_partial_and_scores_zero(self):
        result = score_rule_groups(
            [URGENT_HOUSE_GROUP],
            {"timeline": "6-12 months", "propertyType": "Condo/Apartment"},
        )

        assert result.score == 0
        assert result.matched is False
        assert result.applicable is False
        assert result.matched_conditions == []

    def test_matched_conditions_are_readable(self):
        result = score_rule_groups(
            [URGENT_HOUSE_GROUP],
            {"timeline": "0-3 months", "propertyType": "house"},
        )
        assert result.matched_conditions == [
            "timeline equals 0-3 months",
            "propertyType includes [house, condo]",
        ]


class TestGroupScoring:
    def test_best_group_wins_not_sum(self):
        groups = [
            _group("AND", _cond("flow", "equals", "sell", weight=2)),
            _group("AND", _cond("timeline", "equals", "asap", weight=5)),
        ]
        result = score_rule_groups(groups, {"flow": "sell", "timeline": "asap"})
        assert result.score == 5

    def test_first_group_wins_ties(self):
        groups = [
            _group("AND", _cond("a", "equals", "1", weight=2)),
            _group("AND", _cond("b", "equals", "2", weight=2)),
        ]
        result = score_rule_groups(groups, {"a": "1", "b": "2"})
        assert result.score == 2
        assert result.matched_conditions == ["a equals 1"]

    def test_false_nested_group_contributes_nothing(self):
        group = _group(
            "OR",
            _cond("timeline", "equals", "asap", weight=2),
            _group(
                "AND",
                _cond("budget", "greater_than", "100", weight=3),
                _cond("financing", "equals", "cash", weight=3),
            ),
        )
        # budget leaf is true, but its AND group fails on financing
        result = score_group(group, {"timeline": "asap", "budget": "500"})
        assert result.holds is True
        assert result.score == 2
        assert result.matched_conditions == ("timeline equals asap",)

    def test_true_nested_group_adds_its_score(self):
        group = _group(
            "AND",
            _cond("flow", "equals", "buy", weight=1),
            _group("OR", _cond("a", "equals", "1", weight=2), _cond("b", "equals", "2", weight=4)),
        )
        assert score_group(group, {"flow": "buy", "a": "1", "b": "2"}).score == 7

    def test_or_counts_only_satisfied_leaves(self):
        group = _group("OR", _cond("a", "equals", "1", weight=2), _cond("b", "equals", "2", weight=4))
        assert score_group(group, {"b": "2"}).score == 4

    def test_adding_satisfied_leaf_increases_score(self):
        answers = {"a": "1", "b": "2"}
        for logic in ("AND", "OR"):
            base = _group(logic, _cond("a", "equals", "1", weight=2))
            extended = _group(logic, _cond("a", "equals", "1", weight=2), _cond("b", "equals", "2", weight=1))
            assert score_group(extended, answers).score > score_group(base, answers).score

    def test_total_possible_weight_counts_nested_leaves(self):
        group = _group(
            "OR",
            _cond("a", "equals", "1", weight=2),
            _group("AND", _cond("b", "equals", "2", weight=3), _cond("c", "equals", "3")),
        )
        assert total_possible_weight(group) == 6

    def test_missing_weight_defaults_to_one(self):
        rule = ConditionRule.model_validate({"field": "a", "operator": "equals", "value": "1"})
        result = score_rule_groups([_group("AND", rule)], {"a": "1"})
        assert result.score == 1


class TestApplicability:
    def test_no_rule_groups_is_universal(self):
        result = score_rule_groups(None, {"anything": "x"})
        assert result.applicable is True
        assert result.matched is False
        assert result.score == 0

    def test_vacuous_and_is_applicable_with_zero_score(self):
        result = score_rule_groups([_group("AND")], {})
        assert result.applicable is True
        assert result.matched is False

    def test_empty_or_is_not_applicable(self):
        result = score_rule_groups([_group("OR")], {"a": "1"})
        assert result.applicable is False
        assert result.reason == "No rule group matched"

    def test_min_match_score_excludes_weak_match(self):
        group = _group(
            "OR",
            _cond("timeline", "equals", "asap", weight=3),
            _cond("propertyType", "equals", "house", weight=1),
        )
        answers = {"propertyType": "house"}

        weak = score_rule_groups([group], answers, min_match_score=0.5)
        assert weak.matched is True
        assert weak.applicable is False
        assert "below threshold" in weak.reason

        enough = score_rule_groups([group], answers, min_match_score=0.25)
        assert enough.applicable is True


class TestScoreCandidate:
    def _candidate(self, **applicable_when):
        return Candidate.model_validate({"id": "c1", "title": "T", "applicableWhen": applicable_when})

    def test_flow_mismatch_is_hard_filter(self):
        candidate = self._candidate(flow=["sell"])
        result = score_candidate(candidate, {}, Flow.BUY)
        assert result.applicable is False
        assert result.reason.startswith("Flow mismatch")

    def test_no_flow_requested_skips_filter(self):
        candidate = self._candidate(flow=["sell"])
        assert score_candidate(candidate, {}, None).applicable is True

    def test_flow_match_then_rules(self):
        candidate = self._candidate(
            flow=["buy"],
            ruleGroups=[{"logic": "AND", "rules": [{"field": "timeline", "operator": "equals", "value": "asap", "weight": 2}]}],
            minMatchScore=0.5,
        )
        result = score_candidate(candidate, {"timeline": "asap"}, Flow.BUY)
        assert result.applicable is True
        assert result.score == 2
        assert result.candidate_id == "c1"
