# -*- coding: utf-8 -*-
"""
Classification Service Setup - NodeClass Classification Engine

Provides the ``ClassificationService`` facade that owns the long-lived
pieces of the engine (configuration, the compiled pattern cache and the
validated hierarchy cache) and exposes them through a small API:

    - classify(): one node against one group set
    - classify_many(): a batch of nodes against one group set
    - validate_hierarchy(): structural check of a group set
    - nodes_in_group(): membership listing for one group
    - get_metrics(): service counters and cache statistics

``get_classification_service()`` returns a process-wide singleton;
``configure_classification_service()`` replaces it with one built from an
explicit configuration and starts it.

Usage:
    >>> from nodeclass.classification.setup import get_classification_service
    >>> service = get_classification_service()
    >>> service.startup()
    >>> result = service.classify(node, group_set)
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from nodeclass.classification.classifier import Classifier, GroupsInput
from nodeclass.classification.config import ClassificationConfig, get_config
from nodeclass.classification.hierarchy import HierarchyCache, HierarchyResolver
from nodeclass.classification.models import (
    HierarchyResolution,
    Node,
    ResolvedConfiguration,
)
from nodeclass.classification.rule_evaluator import PatternCache
from nodeclass.exceptions import StructuralError

logger = logging.getLogger(__name__)


# ===================================================================
# ClassificationService facade
# ===================================================================

_singleton_lock = threading.Lock()
_singleton_instance: Optional["ClassificationService"] = None


class ClassificationService:
    """Unified facade over the classification engine.

    Attributes:
        config: ClassificationConfig instance.
        pattern_cache: Shared compiled pattern cache.
        hierarchy_cache: Shared validated hierarchy cache.
        classifier: Classifier wired to the shared caches.

    Example:
        >>> service = ClassificationService()
        >>> result = service.classify(node, group_set)
        >>> print(result.classes)
    """

    def __init__(
        self,
        config: Optional[ClassificationConfig] = None,
    ) -> None:
        """Initialize the Classification Service facade.

        Args:
            config: Optional config. Uses global config if None.
        """
        self.config = config or get_config()

        self.pattern_cache = PatternCache(self.config.pattern_cache_size)
        self.hierarchy_cache = HierarchyCache(
            HierarchyResolver(
                max_groups=self.config.max_groups,
                max_rules_per_group=self.config.max_rules_per_group,
            ),
            max_size=self.config.hierarchy_cache_size,
        )
        self.classifier = Classifier(
            config=self.config,
            pattern_cache=self.pattern_cache,
            hierarchy_cache=self.hierarchy_cache,
        )

        # Internal metrics
        self._lock = threading.Lock()
        self._total_classifications = 0
        self._structural_failures = 0
        self._total_conflicts = 0
        self._total_rule_errors = 0

        self._started = False
        logger.info("ClassificationService facade created")

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(
        self,
        node: Node,
        groups: GroupsInput,
    ) -> ResolvedConfiguration:
        """Classify one node.

        Args:
            node: Node to classify.
            groups: Group set or sequence of groups.

        Returns:
            ResolvedConfiguration for the node.

        Raises:
            StructuralError: If the group hierarchy is invalid.
        """
        try:
            result = self.classifier.classify(node, groups)
        except StructuralError:
            self._count_failure()
            raise
        self._count_results([result])
        return result

    def classify_many(
        self,
        nodes: Iterable[Node],
        groups: GroupsInput,
    ) -> List[ResolvedConfiguration]:
        """Classify a batch of nodes against one group set.

        Raises:
            StructuralError: If the group hierarchy is invalid.
        """
        try:
            results = self.classifier.classify_many(nodes, groups)
        except StructuralError:
            self._count_failure()
            raise
        self._count_results(results)
        return results

    def validate_hierarchy(self, groups: GroupsInput) -> HierarchyResolution:
        """Validate a group set's hierarchy.

        Raises:
            StructuralError: If the hierarchy is invalid.
        """
        return self.classifier.validate_hierarchy(groups)

    def nodes_in_group(
        self,
        group_id: str,
        nodes: Iterable[Node],
        groups: GroupsInput,
    ) -> List[str]:
        """List the certnames belonging to ``group_id``.

        Raises:
            KeyError: If the group does not exist.
            StructuralError: If the group hierarchy is invalid.
        """
        return self.classifier.nodes_in_group(group_id, nodes, groups)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Start the classification service.

        Safe to call multiple times.
        """
        if self._started:
            logger.debug("ClassificationService already started; skipping")
            return

        logger.info("ClassificationService starting up...")
        self._started = True
        logger.info("ClassificationService startup complete")

    def shutdown(self) -> None:
        """Shutdown the classification service and drop its caches."""
        if not self._started:
            return

        self.clear_cache()
        self._started = False
        logger.info("ClassificationService shut down")

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """Get classification service metrics summary.

        Returns:
            Dictionary with service metric summaries.
        """
        pattern_stats = self.pattern_cache.stats()
        return {
            "started": self._started,
            "total_classifications": self._total_classifications,
            "structural_failures": self._structural_failures,
            "total_conflicts": self._total_conflicts,
            "total_rule_errors": self._total_rule_errors,
            "pattern_cache_size": pattern_stats["size"],
            "pattern_cache_hits": pattern_stats["hits"],
            "pattern_cache_misses": pattern_stats["misses"],
            "hierarchy_cache_size": self.hierarchy_cache.count,
            "environment_filter_enabled": self.config.environment_filter_enabled,
            "max_workers": self.config.max_workers,
        }

    def clear_cache(self) -> None:
        """Clear the pattern and hierarchy caches."""
        self.pattern_cache.clear()
        self.hierarchy_cache.invalidate()
        logger.info("Classification caches cleared")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _count_results(self, results: List[ResolvedConfiguration]) -> None:
        with self._lock:
            self._total_classifications += len(results)
            for result in results:
                self._total_conflicts += len(result.conflicts)
                self._total_rule_errors += len(result.errors)

    def _count_failure(self) -> None:
        with self._lock:
            self._structural_failures += 1


# ===================================================================
# Thread-safe singleton access
# ===================================================================


def get_classification_service() -> ClassificationService:
    """Get or create the singleton ClassificationService instance.

    Returns:
        The singleton ClassificationService.
    """
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                _singleton_instance = ClassificationService()
    return _singleton_instance


def configure_classification_service(
    config: Optional[ClassificationConfig] = None,
) -> ClassificationService:
    """Replace the singleton with a service built from ``config`` and start it.

    Args:
        config: Optional classification config.

    Returns:
        The started ClassificationService.
    """
    global _singleton_instance

    service = ClassificationService(config=config)
    with _singleton_lock:
        previous = _singleton_instance
        _singleton_instance = service
    if previous is not None:
        previous.shutdown()

    service.startup()
    logger.info("Classification service configured")
    return service


def reset_classification_service() -> None:
    """Shut down and drop the singleton (primarily for test teardown)."""
    global _singleton_instance
    with _singleton_lock:
        previous = _singleton_instance
        _singleton_instance = None
    if previous is not None:
        previous.shutdown()


__all__ = [
    "ClassificationService",
    "get_classification_service",
    "configure_classification_service",
    "reset_classification_service",
]
