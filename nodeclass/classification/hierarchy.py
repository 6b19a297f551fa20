# -*- coding: utf-8 -*-
"""
Hierarchy Resolver - NodeClass Classification Engine

Validates and linearizes the single-parent group hierarchy. Groups are
held in an arena keyed by id with parent references as ids, so
validation is a walk over ``parent_id`` edges:

    1. Duplicate group ids are rejected.
    2. Every ``parent_id`` must name a group in the snapshot.
    3. No group may be its own ancestor (DFS cycle detection).
    4. Root groups have depth 0; each parent link adds 1.

Validation runs once per group-set version; ``HierarchyCache`` keeps the
resolutions of recent versions so batch classification pays O(groups)
once instead of once per node.

Example:
    >>> from nodeclass.classification.hierarchy import HierarchyResolver
    >>> resolution = HierarchyResolver().validate(group_set)
    >>> resolution.depth("prod-web")
    1
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Dict, List, Optional, Set

from nodeclass.classification.metrics import (
    record_hierarchy_cache_hit,
    record_hierarchy_validation,
    update_groups_count,
)
from nodeclass.classification.models import GroupSet, HierarchyResolution
from nodeclass.exceptions import (
    CapacityError,
    CycleDetectedError,
    DuplicateGroupError,
    UnknownParentError,
)

logger = logging.getLogger(__name__)


class HierarchyResolver:
    """Validates group hierarchies and computes group depths.

    Attributes:
        max_groups: Maximum number of groups accepted in one snapshot.
        max_rules_per_group: Maximum number of rules accepted on one group.

    Example:
        >>> resolver = HierarchyResolver(max_groups=5000)
        >>> resolution = resolver.validate(group_set)
    """

    def __init__(
        self,
        max_groups: Optional[int] = None,
        max_rules_per_group: Optional[int] = None,
    ) -> None:
        """Initialize the HierarchyResolver.

        Args:
            max_groups: Optional group capacity limit.
            max_rules_per_group: Optional per-group rule limit.
        """
        self.max_groups = max_groups
        self.max_rules_per_group = max_rules_per_group

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, group_set: GroupSet) -> HierarchyResolution:
        """Validate a group set and compute every group's depth.

        Args:
            group_set: Snapshot to validate.

        Returns:
            HierarchyResolution with depths, parents and depth order.

        Raises:
            CapacityError: If a configured limit is exceeded.
            DuplicateGroupError: If two groups share an id.
            UnknownParentError: If a parent id does not exist.
            CycleDetectedError: If any group is its own ancestor.
        """
        self._check_capacity(group_set)

        parents: Dict[str, Optional[str]] = {}
        duplicates: Set[str] = set()
        for group in group_set.groups:
            if group.id in parents:
                duplicates.add(group.id)
            parents[group.id] = group.parent_id

        if duplicates:
            record_hierarchy_validation("duplicate")
            raise DuplicateGroupError(
                message=f"Duplicate group ids: {sorted(duplicates)}",
                group_ids=sorted(duplicates),
            )

        missing = {
            gid: parent
            for gid, parent in sorted(parents.items())
            if parent is not None and parent not in parents
        }
        if missing:
            record_hierarchy_validation("unknown_parent")
            raise UnknownParentError(
                message=f"Groups reference unknown parents: {missing}",
                missing=missing,
            )

        cycles = self._detect_cycles(parents)
        if cycles:
            record_hierarchy_validation("cycle")
            logger.warning(
                "Group set %s rejected: %d cycle(s) %s",
                group_set.version[:16], len(cycles), cycles,
            )
            raise CycleDetectedError(
                message=f"Cycle detected in group hierarchy: {cycles}",
                cycles=cycles,
            )

        depths = self._compute_depths(parents)
        order = sorted(depths, key=lambda gid: (depths[gid], gid))

        record_hierarchy_validation("valid")
        update_groups_count(len(order))
        logger.debug(
            "Validated group set %s: %d groups, max depth %d",
            group_set.version[:16], len(order), max(depths.values(), default=0),
        )
        return HierarchyResolution(
            group_set_version=group_set.version,
            depths=depths,
            parents=parents,
            order=order,
        )

    def would_create_cycle(
        self,
        group_set: GroupSet,
        group_id: str,
        new_parent_id: Optional[str],
    ) -> bool:
        """Check whether re-parenting a group would introduce a cycle.

        Used by group-editing workflows to reject an edit before it is
        persisted.

        Args:
            group_set: Current (valid) snapshot.
            group_id: Group being edited.
            new_parent_id: Proposed parent, or None to make it a root.

        Returns:
            True if ``group_id`` would become its own ancestor.
        """
        seen: Set[str] = set()
        current = new_parent_id
        while current is not None:
            if current == group_id:
                return True
            if current in seen:
                # Pre-existing cycle above the proposed parent
                return True
            seen.add(current)
            parent = group_set.get(current)
            current = parent.parent_id if parent is not None else None
        return False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_capacity(self, group_set: GroupSet) -> None:
        if self.max_groups is not None and len(group_set) > self.max_groups:
            raise CapacityError(
                message=f"Group set holds {len(group_set)} groups, limit is {self.max_groups}",
                limit_name="max_groups",
                limit=self.max_groups,
                actual=len(group_set),
            )
        if self.max_rules_per_group is not None:
            for group in group_set.groups:
                if len(group.rules) > self.max_rules_per_group:
                    raise CapacityError(
                        message=(
                            f"Group '{group.id}' has {len(group.rules)} rules, "
                            f"limit is {self.max_rules_per_group}"
                        ),
                        limit_name="max_rules_per_group",
                        limit=self.max_rules_per_group,
                        actual=len(group.rules),
                        context={"group_id": group.id},
                    )

    def _detect_cycles(
        self, parents: Dict[str, Optional[str]],
    ) -> List[List[str]]:
        """Detect cycles in the parent graph using DFS.

        Args:
            parents: Mapping of group id -> parent id.

        Returns:
            Each cycle as a closed path of group ids, e.g. ``[a, b, a]``.
        """
        cycles: List[List[str]] = []
        visited: Set[str] = set()

        # Process groups in sorted order for determinism
        for start in sorted(parents):
            if start in visited:
                continue
            path: List[str] = []
            on_path: Set[str] = set()
            node: Optional[str] = start
            while node is not None and node not in visited:
                visited.add(node)
                on_path.add(node)
                path.append(node)
                node = parents.get(node)
            if node is not None and node in on_path:
                cycle_start = path.index(node)
                cycles.append(path[cycle_start:] + [node])

        return cycles

    def _compute_depths(
        self, parents: Dict[str, Optional[str]],
    ) -> Dict[str, int]:
        """Compute depths of an acyclic parent graph."""
        depths: Dict[str, int] = {}
        for gid in parents:
            chain: List[str] = []
            node: Optional[str] = gid
            while node is not None and node not in depths:
                chain.append(node)
                node = parents[node]
            base = -1 if node is None else depths[node]
            for offset, member in enumerate(reversed(chain), start=1):
                depths[member] = base + offset
        return depths


class HierarchyCache:
    """Thread-safe LRU of validated hierarchies keyed by group-set version.

    Attributes:
        resolver: Resolver used on cache misses.
        max_size: Maximum number of versions retained.
    """

    def __init__(
        self,
        resolver: Optional[HierarchyResolver] = None,
        max_size: int = 16,
    ) -> None:
        self.resolver = resolver or HierarchyResolver()
        self.max_size = max(1, max_size)
        self._entries: "OrderedDict[str, HierarchyResolution]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, group_set: GroupSet) -> HierarchyResolution:
        """Return the cached resolution, validating on a miss.

        Raises:
            StructuralError: Propagated from validation; failures are not cached.
        """
        with self._lock:
            cached = self._entries.get(group_set.version)
            if cached is not None:
                self._entries.move_to_end(group_set.version)
        if cached is not None:
            record_hierarchy_cache_hit()
            return cached

        resolution = self.resolver.validate(group_set)
        with self._lock:
            self._entries[group_set.version] = resolution
            self._entries.move_to_end(group_set.version)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
        return resolution

    def invalidate(self, version: Optional[str] = None) -> None:
        """Drop one version, or every version when None."""
        with self._lock:
            if version is None:
                self._entries.clear()
            else:
                self._entries.pop(version, None)

    @property
    def count(self) -> int:
        return len(self._entries)


__all__ = [
    "HierarchyResolver",
    "HierarchyCache",
]
