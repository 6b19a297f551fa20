# -*- coding: utf-8 -*-
"""
Rule Evaluator - NodeClass Classification Engine

Evaluates one classification rule against one resolved fact value.
Evaluation is total: a well-formed rule always yields True or False, and
a malformed rule (bad regex, non-numeric comparison target, fact shape the
operator cannot use) yields a ``RuleEvaluationError`` attached to a
non-matching result instead of raising.

Semantics:
    - eq/ne: structural equality after numeric normalization. Scalars
      that both coerce to a number compare numerically (1 == 1.0 == "1")
      and integers compare exactly at any magnitude. Other scalars
      compare as strings; maps and sequences compare element by element.
    - gt/gte/lt/lte: both sides must coerce to a number.
    - regex_match/regex_not_match: ``re.search`` against the fact rendered
      as a string; patterns are compiled once and shared through a
      PatternCache.
    - in/not_in: membership using the eq rule.
    - exists/not_exists: test only for ABSENT.

An absent fact makes every operator except ``not_exists`` false without an
error. Defects of the rule itself (an uncompilable pattern, a non-numeric
comparison target) are reported whether or not the fact is present.

Example:
    >>> from nodeclass.classification.rule_evaluator import RuleEvaluator
    >>> evaluator = RuleEvaluator()
    >>> result = evaluator.evaluate_facts(rule, {"os": {"family": "RedHat"}})
    >>> print(result.matched)
"""

from __future__ import annotations

import logging
import re
import threading
from collections import OrderedDict
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from nodeclass.classification.fact_path import ABSENT, resolve_fact
from nodeclass.classification.metrics import (
    record_pattern_cache_hit,
    record_pattern_cache_miss,
    record_rule_error,
)
from nodeclass.classification.models import (
    EQUALITY_OPERATORS,
    LIST_OPERATORS,
    ORDERING_OPERATORS,
    REGEX_OPERATORS,
    ClassificationRule,
    RuleErrorKind,
    RuleEvaluation,
    RuleEvaluationError,
    RuleOperator,
)

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------


def to_number(value: Any) -> Optional[Union[int, float]]:
    """Coerce a scalar to a number, or return None.

    Integers and integer literals stay ``int``; fractional and exponent
    forms become ``float``. Booleans, nulls, containers and non-numeric
    strings do not coerce.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and _NUMBER_RE.match(value):
        text = value.strip()
        if _INTEGER_RE.match(text):
            try:
                return int(text)
            except ValueError:
                # Beyond the interpreter's digit limit for int parsing.
                return float(text)
        return float(text)
    return None


def to_text(value: Any) -> Optional[str]:
    """Render a scalar as a string, or return None for nulls and containers."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return None


def values_equal(left: Any, right: Any) -> bool:
    """Compare two JSON values with numeric normalization.

    Args:
        left: First value.
        right: Second value.

    Returns:
        True if the values are equal under the eq rule.
    """
    if isinstance(left, Mapping) or isinstance(right, Mapping):
        if not (isinstance(left, Mapping) and isinstance(right, Mapping)):
            return False
        if set(left.keys()) != set(right.keys()):
            return False
        return all(values_equal(left[k], right[k]) for k in left)

    if _is_sequence(left) or _is_sequence(right):
        if not (_is_sequence(left) and _is_sequence(right)):
            return False
        if len(left) != len(right):
            return False
        return all(values_equal(a, b) for a, b in zip(left, right))

    if left is None or right is None:
        return left is None and right is None

    left_num = to_number(left)
    right_num = to_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num

    return to_text(left) == to_text(right)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


# ---------------------------------------------------------------------------
# PatternCache
# ---------------------------------------------------------------------------


class PatternCache:
    """Thread-safe LRU cache of compiled regular expressions.

    Compilation failures are cached too, so an invalid pattern is compiled
    once per cache lifetime rather than once per node.

    Attributes:
        max_size: Maximum number of patterns retained.
    """

    def __init__(self, max_size: int = 1024) -> None:
        """Initialize the PatternCache.

        Args:
            max_size: Maximum number of patterns retained.
        """
        self.max_size = max(1, max_size)
        self._patterns: "OrderedDict[str, Union[re.Pattern, re.error]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, pattern: str) -> re.Pattern:
        """Return the compiled pattern.

        Args:
            pattern: Regular expression source.

        Returns:
            Compiled pattern.

        Raises:
            re.error: If the pattern does not compile.
        """
        with self._lock:
            cached = self._patterns.get(pattern)
            if cached is not None:
                self._patterns.move_to_end(pattern)
                self._hits += 1
                hit = True
            else:
                hit = False

        if hit:
            record_pattern_cache_hit()
        else:
            record_pattern_cache_miss()
            try:
                cached = re.compile(pattern)
            except re.error as exc:
                cached = exc
            with self._lock:
                self._misses += 1
                self._patterns[pattern] = cached
                self._patterns.move_to_end(pattern)
                while len(self._patterns) > self.max_size:
                    self._patterns.popitem(last=False)

        if isinstance(cached, re.error):
            raise re.error(cached.msg, cached.pattern, cached.pos)
        return cached

    def clear(self) -> None:
        """Drop every cached pattern."""
        with self._lock:
            self._patterns.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "size": len(self._patterns),
                "hits": self._hits,
                "misses": self._misses,
            }

    @property
    def count(self) -> int:
        """Return the number of cached patterns."""
        return len(self._patterns)


# ---------------------------------------------------------------------------
# RuleEvaluator
# ---------------------------------------------------------------------------


class RuleEvaluator:
    """Evaluates classification rules against resolved fact values.

    Stateless apart from the shared PatternCache, so one instance may be
    used concurrently for many nodes.

    Attributes:
        pattern_cache: Compiled pattern cache shared across evaluations.
        log_errors: Log a warning for every evaluation error.

    Example:
        >>> evaluator = RuleEvaluator(PatternCache(256))
        >>> evaluation = evaluator.evaluate(rule, "RedHat", group_id="base")
    """

    def __init__(
        self,
        pattern_cache: Optional[PatternCache] = None,
        log_errors: bool = True,
    ) -> None:
        """Initialize the RuleEvaluator.

        Args:
            pattern_cache: Shared cache; a private one is created if None.
            log_errors: Log a warning for every evaluation error.
        """
        self.pattern_cache = pattern_cache or PatternCache()
        self.log_errors = log_errors

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def evaluate_facts(
        self,
        rule: ClassificationRule,
        facts: Any,
        group_id: Optional[str] = None,
    ) -> RuleEvaluation:
        """Resolve the rule's fact path and evaluate the rule.

        Args:
            rule: Rule to evaluate.
            facts: Node fact tree.
            group_id: Owning group, recorded on errors.

        Returns:
            RuleEvaluation for the rule.
        """
        return self.evaluate(rule, resolve_fact(facts, rule.fact_path), group_id)

    def evaluate(
        self,
        rule: ClassificationRule,
        value: Any,
        group_id: Optional[str] = None,
    ) -> RuleEvaluation:
        """Evaluate a rule against an already-resolved fact value.

        Args:
            rule: Rule to evaluate.
            value: Resolved fact value or ABSENT.
            group_id: Owning group, recorded on errors.

        Returns:
            RuleEvaluation; ``error`` is set for malformed rules.
        """
        present = value is not ABSENT
        op = rule.operator

        try:
            matched = self._match(rule, op, value, present)
        except _RuleError as exc:
            error = RuleEvaluationError(
                group_id=group_id,
                rule_id=rule.id,
                fact_path=rule.fact_path,
                kind=exc.kind,
                message=exc.message,
            )
            record_rule_error(exc.kind.value)
            if self.log_errors:
                logger.warning(
                    "Rule %s (group %s, %s %s) failed: %s",
                    rule.id, group_id, rule.fact_path, op.value, exc.message,
                )
            return RuleEvaluation(
                rule_id=rule.id,
                matched=False,
                fact_present=present,
                fact_value=value if present else None,
                error=error,
            )

        return RuleEvaluation(
            rule_id=rule.id,
            matched=matched,
            fact_present=present,
            fact_value=value if present else None,
        )

    # ------------------------------------------------------------------
    # Operator dispatch
    # ------------------------------------------------------------------

    def _match(
        self,
        rule: ClassificationRule,
        op: RuleOperator,
        value: Any,
        present: bool,
    ) -> bool:
        if op == RuleOperator.EXISTS:
            return present
        if op == RuleOperator.NOT_EXISTS:
            return not present

        if op in REGEX_OPERATORS:
            pattern = self._compile(rule.value.scalar)
            if not present:
                return False
            text = to_text(value)
            if text is None:
                raise _RuleError(
                    RuleErrorKind.INVALID_RULE_SHAPE,
                    f"Fact '{rule.fact_path}' holds a {_describe(value)}, "
                    f"which cannot be matched against a pattern",
                )
            found = pattern.search(text) is not None
            return found if op == RuleOperator.REGEX_MATCH else not found

        if op in ORDERING_OPERATORS:
            expected = to_number(rule.value.scalar)
            if expected is None:
                raise _RuleError(
                    RuleErrorKind.NON_NUMERIC_COMPARISON,
                    f"Rule value {rule.value.scalar!r} is not numeric",
                )
            if not present:
                return False
            actual = to_number(value)
            if actual is None:
                raise _RuleError(
                    RuleErrorKind.NON_NUMERIC_COMPARISON,
                    f"Fact '{rule.fact_path}' value {value!r} is not numeric",
                )
            if op == RuleOperator.GT:
                return actual > expected
            if op == RuleOperator.GTE:
                return actual >= expected
            if op == RuleOperator.LT:
                return actual < expected
            return actual <= expected

        if not present:
            return False

        if op in EQUALITY_OPERATORS:
            equal = values_equal(value, rule.value.scalar)
            return equal if op == RuleOperator.EQ else not equal

        if op in LIST_OPERATORS:
            member = any(values_equal(value, item) for item in rule.value.items)
            return member if op == RuleOperator.IN else not member

        raise _RuleError(
            RuleErrorKind.INVALID_RULE_SHAPE,
            f"Unsupported operator '{op}'",
        )

    def _compile(self, pattern: str) -> re.Pattern:
        try:
            return self.pattern_cache.get(pattern)
        except re.error as exc:
            raise _RuleError(
                RuleErrorKind.BAD_REGEX,
                f"Invalid pattern {pattern!r}: {exc}",
            ) from exc


class _RuleError(Exception):
    """Internal signal carrying a rule-level evaluation error."""

    def __init__(self, kind: RuleErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Mapping):
        return "map"
    if _is_sequence(value):
        return "sequence"
    return type(value).__name__


__all__ = [
    "PatternCache",
    "RuleEvaluator",
    "to_number",
    "to_text",
    "values_equal",
]
