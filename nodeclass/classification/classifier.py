# -*- coding: utf-8 -*-
"""
Classification Orchestrator - NodeClass Classification Engine

Top-level entry point of the engine. For one node and one group-set
snapshot it:

    1. Validates the hierarchy (cached per group-set version). A cycle,
       unknown parent or duplicate id fails the whole run.
    2. Matches the node against every group in depth order, collecting
       rule evaluation errors.
    3. Merges the matched groups' payloads by depth precedence.
    4. Returns a ResolvedConfiguration with matched groups ordered by
       depth then id, conflicts, errors and a provenance hash.

Classification is a pure, synchronous computation. The only shared state
is the compiled pattern cache and the validated hierarchy cache, both
thread-safe, so many nodes can be classified concurrently against the
same snapshot.

Example:
    >>> from nodeclass.classification.classifier import classify
    >>> result = classify("web01", facts, "production", groups)
    >>> result.matched_group_ids
    ['redhat-base', 'prod-web']
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from nodeclass.classification.config import ClassificationConfig, get_config
from nodeclass.classification.group_matcher import GroupMatcher
from nodeclass.classification.hierarchy import HierarchyCache, HierarchyResolver
from nodeclass.classification.merge_engine import MergeEngine
from nodeclass.classification.metrics import (
    record_classification,
    record_group_match,
)
from nodeclass.classification.models import (
    GroupMatch,
    GroupSet,
    HierarchyResolution,
    Node,
    NodeGroup,
    ResolvedConfiguration,
    RuleEvaluationError,
)
from nodeclass.classification.rule_evaluator import PatternCache, RuleEvaluator
from nodeclass.exceptions import StructuralError

logger = logging.getLogger(__name__)

GroupsInput = Union[GroupSet, Sequence[Union[NodeGroup, Dict[str, Any]]]]


def as_group_set(groups: GroupsInput) -> GroupSet:
    """Wrap a sequence of groups (models or dicts) into a GroupSet."""
    if isinstance(groups, GroupSet):
        return groups
    return GroupSet(groups=list(groups))


class Classifier:
    """Classifies nodes against group-set snapshots.

    Attributes:
        config: Engine configuration.
        pattern_cache: Compiled regex cache shared by all evaluations.
        hierarchy_cache: Validated hierarchies keyed by group-set version.
        matcher: Group matcher.
        merge_engine: Payload merge engine.

    Example:
        >>> classifier = Classifier()
        >>> result = classifier.classify(node, group_set)
        >>> print(result.classes)
    """

    def __init__(
        self,
        config: Optional[ClassificationConfig] = None,
        pattern_cache: Optional[PatternCache] = None,
        hierarchy_cache: Optional[HierarchyCache] = None,
    ) -> None:
        """Initialize the Classifier.

        Args:
            config: Optional config. Uses global config if None.
            pattern_cache: Optional shared pattern cache.
            hierarchy_cache: Optional shared hierarchy cache.
        """
        self.config = config or get_config()
        self.pattern_cache = pattern_cache or PatternCache(
            self.config.pattern_cache_size,
        )
        evaluator = RuleEvaluator(
            self.pattern_cache, log_errors=self.config.log_rule_errors,
        )
        self.matcher = GroupMatcher(
            evaluator,
            environment_filter_enabled=self.config.environment_filter_enabled,
        )
        self.hierarchy_cache = hierarchy_cache or HierarchyCache(
            HierarchyResolver(
                max_groups=self.config.max_groups,
                max_rules_per_group=self.config.max_rules_per_group,
            ),
            max_size=self.config.hierarchy_cache_size,
        )
        self.merge_engine = MergeEngine()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate_hierarchy(self, groups: GroupsInput) -> HierarchyResolution:
        """Validate a group set's hierarchy.

        Args:
            groups: Group set or sequence of groups.

        Returns:
            HierarchyResolution for the snapshot.

        Raises:
            StructuralError: If the hierarchy is invalid.
        """
        return self.hierarchy_cache.get(as_group_set(groups))

    def classify(
        self,
        node: Node,
        groups: GroupsInput,
        resolution: Optional[HierarchyResolution] = None,
    ) -> ResolvedConfiguration:
        """Classify one node.

        Args:
            node: Node to classify.
            groups: Group set or sequence of groups.
            resolution: Pre-validated hierarchy for ``groups``; validated
                (through the cache) if None.

        Returns:
            The node's ResolvedConfiguration.

        Raises:
            StructuralError: If the group hierarchy is invalid.
        """
        start_time = time.time()
        group_set = as_group_set(groups)

        if resolution is None:
            try:
                resolution = self.hierarchy_cache.get(group_set)
            except StructuralError:
                record_classification("structural_error", time.time() - start_time)
                raise

        facts = self._prepare_facts(node)
        matched: List[NodeGroup] = []
        group_matches: List[GroupMatch] = []
        errors: List[RuleEvaluationError] = []

        for group_id in resolution.order:
            group = group_set.get(group_id)
            if group is None:
                continue
            outcome = self.matcher.match(node, group, facts)
            errors.extend(outcome.errors)
            if not outcome.matched:
                continue
            matched.append(group)
            group_matches.append(GroupMatch(
                group_id=group.id,
                name=group.name,
                depth=resolution.depth(group.id),
                match_type=outcome.match_type,
                matched_rule_ids=outcome.matched_rule_ids,
            ))
            record_group_match(outcome.match_type.value)

        merged = self.merge_engine.merge(matched, resolution, node.environment)

        result = ResolvedConfiguration(
            certname=node.certname,
            environment=merged.environment,
            matched_group_ids=[m.group_id for m in group_matches],
            groups=group_matches,
            classes=merged.classes,
            parameters=merged.parameters,
            variables=merged.variables,
            conflicts=merged.conflicts,
            errors=errors,
            group_set_version=group_set.version,
        )
        result.provenance_hash = result.compute_hash()

        elapsed = time.time() - start_time
        record_classification("success", elapsed)
        logger.debug(
            "Classified %s: %d groups, %d classes, %d conflicts, %d errors (%.2f ms)",
            node.certname, len(group_matches), len(result.classes),
            len(result.conflicts), len(errors), elapsed * 1000,
        )
        return result

    def classify_many(
        self,
        nodes: Iterable[Node],
        groups: GroupsInput,
    ) -> List[ResolvedConfiguration]:
        """Classify many nodes against one snapshot.

        The hierarchy is validated once. With ``max_workers > 1`` nodes are
        classified on a thread pool; results keep the input order.

        Args:
            nodes: Nodes to classify.
            groups: Group set or sequence of groups.

        Returns:
            One ResolvedConfiguration per node.

        Raises:
            StructuralError: If the group hierarchy is invalid.
        """
        group_set = as_group_set(groups)
        resolution = self.hierarchy_cache.get(group_set)
        node_list = list(nodes)

        if self.config.max_workers <= 1 or len(node_list) <= 1:
            return [self.classify(n, group_set, resolution) for n in node_list]

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            results = list(executor.map(
                lambda n: self.classify(n, group_set, resolution), node_list,
            ))
        logger.info(
            "Classified %d nodes against group set %s (%d workers)",
            len(results), group_set.version[:16], self.config.max_workers,
        )
        return results

    def nodes_in_group(
        self,
        group_id: str,
        nodes: Iterable[Node],
        groups: GroupsInput,
    ) -> List[str]:
        """List the certnames that belong to one group.

        Args:
            group_id: Group to inspect.
            nodes: Candidate nodes.
            groups: Group set or sequence of groups.

        Returns:
            Sorted, de-duplicated certnames that are pinned to or match
            the group.

        Raises:
            KeyError: If ``group_id`` is not in the group set.
            StructuralError: If the group hierarchy is invalid.
        """
        group_set = as_group_set(groups)
        self.hierarchy_cache.get(group_set)
        group = group_set.get(group_id)
        if group is None:
            raise KeyError(f"Group not found: {group_id}")

        members = set()
        for node in nodes:
            if self.matcher.match(node, group, self._prepare_facts(node)).matched:
                members.add(node.certname)
        return sorted(members)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _prepare_facts(self, node: Node) -> Dict[str, Any]:
        """Return the fact tree with the ``clientcert`` pseudo-fact."""
        if not self.config.inject_clientcert or "clientcert" in node.facts:
            return node.facts
        facts = dict(node.facts)
        facts["clientcert"] = node.certname
        return facts


# ---------------------------------------------------------------------------
# Functional entry points
# ---------------------------------------------------------------------------


def classify(
    certname: str,
    facts: Dict[str, Any],
    environment: Optional[str],
    groups: GroupsInput,
    config: Optional[ClassificationConfig] = None,
) -> ResolvedConfiguration:
    """Classify one node with a throwaway Classifier.

    Args:
        certname: Node certname.
        facts: Node fact tree.
        environment: Node environment, if known.
        groups: Group set or sequence of groups.
        config: Optional config. Uses global config if None.

    Returns:
        The node's ResolvedConfiguration.

    Raises:
        StructuralError: If the group hierarchy is invalid.
    """
    node = Node(certname=certname, facts=facts, environment=environment)
    return Classifier(config).classify(node, groups)


def validate_hierarchy(
    groups: GroupsInput,
    config: Optional[ClassificationConfig] = None,
) -> HierarchyResolution:
    """Validate a group hierarchy without classifying anything.

    Raises:
        StructuralError: If the hierarchy is invalid.
    """
    cfg = config or get_config()
    resolver = HierarchyResolver(
        max_groups=cfg.max_groups, max_rules_per_group=cfg.max_rules_per_group,
    )
    return resolver.validate(as_group_set(groups))


__all__ = [
    "Classifier",
    "as_group_set",
    "classify",
    "validate_hierarchy",
]
