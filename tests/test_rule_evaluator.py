# -*- coding: utf-8 -*-
"""
Test Suite for the Rule Evaluator
=================================

Covers operator semantics, numeric normalization, absence handling, rule
shape validation and rule-level evaluation errors.
"""

import re

import pytest
from pydantic import ValidationError

from nodeclass.classification.fact_path import ABSENT
from nodeclass.classification.models import (
    ClassificationRule,
    RuleErrorKind,
    RuleOperator,
    ValueKind,
)
from nodeclass.classification.rule_evaluator import (
    PatternCache,
    RuleEvaluator,
    to_number,
    values_equal,
)


def rule(fact_path, operator, value=None, rule_id="r1"):
    data = {"id": rule_id, "fact_path": fact_path, "operator": operator}
    if value is not None:
        data["value"] = value
    return ClassificationRule(**data)


@pytest.fixture
def evaluator():
    return RuleEvaluator(PatternCache(16), log_errors=False)


@pytest.fixture
def facts():
    return {
        "os": {"family": "RedHat", "release": {"major": "9"}},
        "processors": {"count": 4},
        "is_virtual": True,
        "tags": ["web", "prod"],
        "nothing": None,
    }


# =============================================================================
# Rule construction
# =============================================================================


class TestRuleShape:
    """Operator-specific value shapes are enforced when a rule is built."""

    def test_symbolic_aliases(self):
        assert rule("a", "=", "x").operator == RuleOperator.EQ
        assert rule("a", "!~", "x").operator == RuleOperator.REGEX_NOT_MATCH
        assert rule("a", ">=", 1).operator == RuleOperator.GTE

    def test_operator_case_insensitive(self):
        assert rule("a", "NOT_IN", ["x"]).operator == RuleOperator.NOT_IN

    def test_in_requires_list(self):
        with pytest.raises(ValidationError):
            rule("a", "in", "x")

    def test_eq_rejects_list(self):
        with pytest.raises(ValidationError):
            rule("a", "eq", ["x"])

    def test_regex_requires_string(self):
        with pytest.raises(ValidationError):
            rule("a", "regex_match", 5)

    def test_map_value_rejected(self):
        with pytest.raises(ValidationError):
            rule("a", "eq", {"k": "v"})

    def test_list_of_maps_rejected(self):
        with pytest.raises(ValidationError):
            rule("a", "in", [{"k": "v"}])

    def test_exists_drops_value(self):
        r = rule("a", "exists", "ignored")
        assert r.value.kind == ValueKind.NONE

    def test_malformed_fact_path_rejected(self):
        with pytest.raises(ValidationError):
            rule("a..b", "exists")

    def test_value_serializes_as_raw_json(self):
        assert rule("a", "in", ["x", 1]).model_dump()["value"] == ["x", 1]


# =============================================================================
# Coercion helpers
# =============================================================================


class TestCoercion:

    @pytest.mark.parametrize("value,expected", [
        (1, 1.0),
        (2.5, 2.5),
        ("3", 3.0),
        (" 4.5 ", 4.5),
        ("1e3", 1000.0),
        ("abc", None),
        (True, None),
        (None, None),
        ([1], None),
    ])
    def test_to_number(self, value, expected):
        assert to_number(value) == expected

    def test_numeric_equality(self):
        assert values_equal(1, 1.0)
        assert values_equal(1, "1")
        assert values_equal("1.0", 1)

    def test_string_equality_when_not_numeric(self):
        assert values_equal("RedHat", "RedHat")
        assert not values_equal("RedHat", "redhat")

    def test_boolean_equals_its_text(self):
        assert values_equal(True, "true")
        assert not values_equal(True, 1)

    def test_null_only_equals_null(self):
        assert values_equal(None, None)
        assert not values_equal(None, "")

    def test_structural_equality(self):
        assert values_equal({"a": [1, "2"]}, {"a": ["1", 2.0]})
        assert not values_equal({"a": 1}, {"a": 1, "b": 2})
        assert not values_equal([1, 2], [1])

    def test_large_integers_compare_exactly(self):
        assert to_number("9007199254740993") == 9007199254740993
        assert not values_equal(9007199254740993, 9007199254740992)
        assert not values_equal("9007199254740993", 9007199254740992)
        assert values_equal("9007199254740993", 9007199254740993)

    def test_integer_beyond_float_range(self):
        huge = 10 ** 400
        assert not values_equal(huge, "1")
        assert values_equal(huge, str(huge))
        assert not values_equal(huge, 1.5)


# =============================================================================
# Operator semantics
# =============================================================================


class TestOperators:

    def test_eq_matches(self, evaluator, facts):
        assert evaluator.evaluate_facts(rule("os.family", "eq", "RedHat"), facts).matched

    def test_eq_numeric_normalization(self, evaluator, facts):
        assert evaluator.evaluate_facts(rule("os.release.major", "eq", 9), facts).matched

    def test_ne(self, evaluator, facts):
        assert evaluator.evaluate_facts(rule("os.family", "ne", "Debian"), facts).matched
        assert not evaluator.evaluate_facts(rule("os.family", "ne", "RedHat"), facts).matched

    def test_eq_boolean_fact(self, evaluator, facts):
        assert evaluator.evaluate_facts(rule("is_virtual", "eq", True), facts).matched
        assert evaluator.evaluate_facts(rule("is_virtual", "eq", "true"), facts).matched

    def test_regex_match_searches(self, evaluator, facts):
        assert evaluator.evaluate_facts(rule("os.family", "regex_match", "^Red"), facts).matched
        assert evaluator.evaluate_facts(rule("os.family", "~", "Hat"), facts).matched

    def test_regex_not_match(self, evaluator, facts):
        assert evaluator.evaluate_facts(
            rule("os.family", "regex_not_match", "^Deb"), facts,
        ).matched

    def test_regex_against_number(self, evaluator, facts):
        assert evaluator.evaluate_facts(
            rule("processors.count", "regex_match", "^4$"), facts,
        ).matched

    @pytest.mark.parametrize("operator,value,expected", [
        ("gt", 3, True),
        ("gt", 4, False),
        ("gte", "4", True),
        ("lt", 4.5, True),
        ("lte", 3, False),
    ])
    def test_ordering(self, evaluator, facts, operator, value, expected):
        result = evaluator.evaluate_facts(rule("processors.count", operator, value), facts)
        assert result.matched is expected
        assert result.error is None

    def test_in(self, evaluator, facts):
        assert evaluator.evaluate_facts(
            rule("os.family", "in", ["Debian", "RedHat"]), facts,
        ).matched
        assert evaluator.evaluate_facts(
            rule("os.release.major", "in", [8, 9]), facts,
        ).matched

    def test_not_in(self, evaluator, facts):
        assert evaluator.evaluate_facts(
            rule("os.family", "not_in", ["Debian", "Suse"]), facts,
        ).matched
        assert not evaluator.evaluate_facts(
            rule("os.family", "not_in", ["RedHat"]), facts,
        ).matched

    def test_exists_on_present_fact(self, evaluator, facts):
        assert evaluator.evaluate_facts(rule("os.family", "exists"), facts).matched

    def test_exists_on_null_fact(self, evaluator, facts):
        assert evaluator.evaluate_facts(rule("nothing", "exists"), facts).matched

    def test_not_exists_on_missing_fact(self, evaluator, facts):
        assert evaluator.evaluate_facts(rule("os.arch", "not_exists"), facts).matched

    def test_fact_value_is_reported(self, evaluator, facts):
        result = evaluator.evaluate_facts(rule("os.family", "eq", "RedHat"), facts)
        assert result.fact_present
        assert result.fact_value == "RedHat"

    def test_large_integer_facts(self, evaluator):
        facts = {"serial": 10 ** 400, "n": 9007199254740992}
        for case in (
            rule("serial", "eq", "1"),
            rule("serial", "lt", 1.5),
            rule("n", "eq", 9007199254740993),
            rule("n", "gte", "9007199254740993"),
            rule("n", "in", [9007199254740993]),
        ):
            result = evaluator.evaluate_facts(case, facts)
            assert result.matched is False
            assert result.error is None
        assert evaluator.evaluate_facts(rule("serial", "gt", 1), facts).matched
        assert evaluator.evaluate_facts(rule("n", "lt", 9007199254740993), facts).matched


# =============================================================================
# Absence
# =============================================================================


class TestAbsence:
    """Every comparison against a missing fact is false without an error."""

    @pytest.mark.parametrize("operator,value", [
        ("eq", "x"),
        ("ne", "x"),
        ("regex_match", "x"),
        ("regex_not_match", "x"),
        ("gt", 1),
        ("gte", 1),
        ("lt", 1),
        ("lte", 1),
        ("in", ["x"]),
        ("not_in", ["x"]),
        ("exists", None),
    ])
    def test_missing_fact_is_false(self, evaluator, operator, value):
        result = evaluator.evaluate(rule("missing", operator, value), ABSENT)
        assert result.matched is False
        assert result.error is None
        assert result.fact_present is False

    def test_not_exists_on_absent(self, evaluator):
        assert evaluator.evaluate(rule("missing", "not_exists"), ABSENT).matched


# =============================================================================
# Evaluation errors
# =============================================================================


class TestEvaluationErrors:

    def test_bad_regex(self, evaluator, facts):
        result = evaluator.evaluate_facts(
            rule("os.family", "regex_match", "(unclosed"), facts, group_id="g1",
        )
        assert result.matched is False
        assert result.error.kind == RuleErrorKind.BAD_REGEX
        assert result.error.group_id == "g1"
        assert result.error.rule_id == "r1"

    def test_bad_regex_reported_when_fact_absent(self, evaluator):
        result = evaluator.evaluate(rule("missing", "regex_not_match", "["), ABSENT)
        assert result.matched is False
        assert result.error.kind == RuleErrorKind.BAD_REGEX

    def test_non_numeric_fact(self, evaluator, facts):
        result = evaluator.evaluate_facts(rule("os.family", "gt", 5), facts)
        assert result.matched is False
        assert result.error.kind == RuleErrorKind.NON_NUMERIC_COMPARISON

    def test_non_numeric_rule_value(self, evaluator, facts):
        result = evaluator.evaluate_facts(rule("processors.count", "lt", "many"), facts)
        assert result.error.kind == RuleErrorKind.NON_NUMERIC_COMPARISON

    def test_boolean_fact_is_not_numeric(self, evaluator, facts):
        result = evaluator.evaluate_facts(rule("is_virtual", "gte", 1), facts)
        assert result.error.kind == RuleErrorKind.NON_NUMERIC_COMPARISON

    def test_regex_against_container(self, evaluator, facts):
        result = evaluator.evaluate_facts(rule("tags", "regex_match", "web"), facts)
        assert result.matched is False
        assert result.error.kind == RuleErrorKind.INVALID_RULE_SHAPE

    def test_regex_not_match_error_is_not_a_match(self, evaluator, facts):
        result = evaluator.evaluate_facts(rule("nothing", "regex_not_match", "x"), facts)
        assert result.matched is False
        assert result.error.kind == RuleErrorKind.INVALID_RULE_SHAPE


# =============================================================================
# Pattern cache
# =============================================================================


class TestPatternCache:

    def test_pattern_compiled_once(self):
        cache = PatternCache(4)
        first = cache.get("^web")
        second = cache.get("^web")
        assert first is second
        assert cache.stats() == {"size": 1, "hits": 1, "misses": 1}

    def test_invalid_pattern_cached(self):
        cache = PatternCache(4)
        with pytest.raises(re.error):
            cache.get("(")
        with pytest.raises(re.error):
            cache.get("(")
        assert cache.stats()["misses"] == 1

    def test_lru_eviction(self):
        cache = PatternCache(2)
        cache.get("a")
        cache.get("b")
        cache.get("a")
        cache.get("c")
        assert cache.count == 2
        cache.get("b")
        assert cache.stats()["misses"] == 4

    def test_clear(self):
        cache = PatternCache(2)
        cache.get("a")
        cache.clear()
        assert cache.count == 0
