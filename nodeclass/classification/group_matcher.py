# -*- coding: utf-8 -*-
"""
Group Matcher - NodeClass Classification Engine

Decides whether one node belongs to one group:

    1. A certname on the group's pin list matches unconditionally; rules
       and the environment filter are skipped.
    2. An environment-scoped group (``environment`` set, not an
       environment group) whose environment differs from the node's is
       filtered out before any rule runs. The filter can be disabled in
       configuration.
    3. A group without rules matches only when ``match_all_nodes`` is set.
    4. Otherwise every rule is evaluated and combined with AND (``all``)
       or OR (``any``). A rule that failed to evaluate counts as false.

Every rule is evaluated even when the outcome is already decided, so each
rule error is surfaced for every node it affects.

Example:
    >>> from nodeclass.classification.group_matcher import GroupMatcher
    >>> outcome = GroupMatcher().match(node, group)
    >>> outcome.matched, outcome.match_type
    (True, <MatchType.RULES: 'rules'>)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from nodeclass.classification.models import (
    MatchType,
    Node,
    NodeGroup,
    RuleEvaluation,
    RuleEvaluationError,
    RuleMatchType,
)
from nodeclass.classification.rule_evaluator import RuleEvaluator

logger = logging.getLogger(__name__)


@dataclass
class GroupMatchOutcome:
    """Verdict of matching one node against one group."""

    group_id: str
    matched: bool
    match_type: Optional[MatchType] = None
    evaluations: List[RuleEvaluation] = field(default_factory=list)
    filtered_by_environment: bool = False

    @property
    def matched_rule_ids(self) -> List[str]:
        return [e.rule_id for e in self.evaluations if e.matched]

    @property
    def errors(self) -> List[RuleEvaluationError]:
        return [e.error for e in self.evaluations if e.error is not None]


class GroupMatcher:
    """Matches nodes against groups.

    Attributes:
        evaluator: Rule evaluator used for rule-based matching.
        environment_filter_enabled: Apply the environment pre-filter.
    """

    def __init__(
        self,
        evaluator: Optional[RuleEvaluator] = None,
        environment_filter_enabled: bool = True,
    ) -> None:
        """Initialize the GroupMatcher.

        Args:
            evaluator: Rule evaluator; a default one is created if None.
            environment_filter_enabled: Apply the environment pre-filter.
        """
        self.evaluator = evaluator or RuleEvaluator()
        self.environment_filter_enabled = environment_filter_enabled

    def matches(self, node: Node, group: NodeGroup) -> bool:
        """Return True if ``node`` belongs to ``group``."""
        return self.match(node, group).matched

    def match(
        self,
        node: Node,
        group: NodeGroup,
        facts: Optional[Any] = None,
    ) -> GroupMatchOutcome:
        """Match a node against a group.

        Args:
            node: Node being classified.
            group: Candidate group.
            facts: Fact tree to evaluate instead of ``node.facts``
                (e.g. with pseudo-facts added).

        Returns:
            GroupMatchOutcome with verdict, match type and rule evaluations.
        """
        if group.is_pinned(node.certname):
            logger.debug("Node %s pinned to group %s", node.certname, group.id)
            return GroupMatchOutcome(
                group_id=group.id, matched=True, match_type=MatchType.PINNED,
            )

        if self._filtered_by_environment(node, group):
            logger.debug(
                "Group %s skipped for %s: environment %s != %s",
                group.id, node.certname, group.environment, node.environment,
            )
            return GroupMatchOutcome(
                group_id=group.id, matched=False, filtered_by_environment=True,
            )

        if not group.rules:
            if group.match_all_nodes:
                return GroupMatchOutcome(
                    group_id=group.id, matched=True, match_type=MatchType.MATCH_ALL,
                )
            return GroupMatchOutcome(group_id=group.id, matched=False)

        tree = node.facts if facts is None else facts
        evaluations = [
            self.evaluator.evaluate_facts(rule, tree, group_id=group.id)
            for rule in group.rules
        ]

        if group.rule_match_type == RuleMatchType.ALL:
            matched = all(e.matched for e in evaluations)
        else:
            matched = any(e.matched for e in evaluations)

        return GroupMatchOutcome(
            group_id=group.id,
            matched=matched,
            match_type=MatchType.RULES if matched else None,
            evaluations=evaluations,
        )

    def _filtered_by_environment(self, node: Node, group: NodeGroup) -> bool:
        if not self.environment_filter_enabled:
            return False
        if group.environment is None or group.is_environment_group:
            return False
        return group.environment != node.environment


__all__ = [
    "GroupMatchOutcome",
    "GroupMatcher",
]
