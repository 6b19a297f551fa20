# -*- coding: utf-8 -*-
"""
Configuration Merge Engine - NodeClass Classification Engine

Merges the payloads of every group a node matched into the node's
effective configuration.

Rules:
    - Classes: union of all matched groups' classes, sorted.
    - Parameters / variables: for each key the deepest defining group
      wins (root-most groups are overridden by their descendants).
    - Same-depth tie-break: when several groups at one depth set a key,
      the group with the lowest id (string order) wins at that depth.
      Every depth where their values differ records a ParameterConflict,
      even when a deeper group overrides the key; values are compared by
      canonical JSON.
    - Environment: environment groups assign their environment with the
      same precedence and tie-break; otherwise the node's reported
      environment is kept.

Pinned and rule-based matches are merged identically. The merge never
fails: ambiguities are reported as conflicts.

Example:
    >>> from nodeclass.classification.merge_engine import MergeEngine
    >>> merged = MergeEngine().merge(matched_groups, resolution)
    >>> merged.parameters
    {'port': 80}
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from nodeclass.classification.metrics import record_merge_conflict
from nodeclass.classification.models import (
    ConflictScope,
    HierarchyResolution,
    NodeGroup,
    ParameterConflict,
    canonical_json,
)

logger = logging.getLogger(__name__)

# (depth, group_id, value)
_Proposal = Tuple[int, str, Any]


@dataclass
class MergeResult:
    """Effective payload of a node."""

    classes: List[str] = field(default_factory=list)
    parameters: Dict[str, Any] = field(default_factory=dict)
    variables: Dict[str, Any] = field(default_factory=dict)
    environment: Optional[str] = None
    conflicts: List[ParameterConflict] = field(default_factory=list)


class MergeEngine:
    """Depth-precedence merge of matched group payloads."""

    def merge(
        self,
        groups: Sequence[NodeGroup],
        resolution: HierarchyResolution,
        node_environment: Optional[str] = None,
    ) -> MergeResult:
        """Merge matched groups into an effective configuration.

        Args:
            groups: Groups the node matched, in any order.
            resolution: Validated hierarchy providing group depths.
            node_environment: Environment reported by the node.

        Returns:
            MergeResult with classes, parameters, variables, environment
            and conflicts.
        """
        ordered = sorted(groups, key=lambda g: (resolution.depth(g.id), g.id))
        conflicts: List[ParameterConflict] = []

        classes = sorted({name for group in ordered for name in group.classes})

        parameters = self._merge_scope(
            ordered, resolution, ConflictScope.PARAMETERS, conflicts,
        )
        variables = self._merge_scope(
            ordered, resolution, ConflictScope.VARIABLES, conflicts,
        )

        environment = node_environment
        env_proposals: List[_Proposal] = [
            (resolution.depth(group.id), group.id, group.environment)
            for group in ordered
            if group.is_environment_group and group.environment
        ]
        if env_proposals:
            environment = self._pick(
                "environment", env_proposals, ConflictScope.ENVIRONMENT, conflicts,
            )

        return MergeResult(
            classes=classes,
            parameters=parameters,
            variables=variables,
            environment=environment,
            conflicts=conflicts,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _merge_scope(
        self,
        ordered: Sequence[NodeGroup],
        resolution: HierarchyResolution,
        scope: ConflictScope,
        conflicts: List[ParameterConflict],
    ) -> Dict[str, Any]:
        proposals: Dict[str, List[_Proposal]] = {}
        for group in ordered:
            payload = group.parameters if scope == ConflictScope.PARAMETERS else group.variables
            depth = resolution.depth(group.id)
            for key, value in payload.items():
                proposals.setdefault(key, []).append((depth, group.id, value))

        merged: Dict[str, Any] = {}
        for key in sorted(proposals):
            merged[key] = copy.deepcopy(
                self._pick(key, proposals[key], scope, conflicts),
            )
        return merged

    def _pick(
        self,
        key: str,
        proposals: List[_Proposal],
        scope: ConflictScope,
        conflicts: List[ParameterConflict],
    ) -> Any:
        """Choose the value for one key and record every same-depth conflict.

        Each depth level is tie-broken on its own; the deepest level's
        winner is the effective value.
        """
        levels: Dict[int, List[Tuple[str, Any]]] = {}
        for depth, gid, value in proposals:
            levels.setdefault(depth, []).append((gid, value))

        chosen: Any = None
        for depth in sorted(levels):
            contenders = sorted(levels[depth], key=lambda item: item[0])
            level_gid, level_value = contenders[0]
            chosen = level_value

            distinct = {canonical_json(value) for _, value in contenders}
            if len(distinct) < 2:
                continue
            conflict = ParameterConflict(
                key=key,
                scope=scope,
                depth=depth,
                group_ids=[gid for gid, _ in contenders],
                chosen_value=copy.deepcopy(level_value),
                values={gid: copy.deepcopy(value) for gid, value in contenders},
            )
            conflicts.append(conflict)
            record_merge_conflict(scope.value)
            logger.warning(
                "Conflict on %s '%s' at depth %d between %s; using value from %s",
                scope.value, key, depth, conflict.group_ids, level_gid,
            )
        return chosen


__all__ = [
    "MergeEngine",
    "MergeResult",
]
