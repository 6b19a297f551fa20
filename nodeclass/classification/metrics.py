# -*- coding: utf-8 -*-
"""
Prometheus Metrics - NodeClass Classification Engine

Prometheus metrics for classification monitoring.

Metrics:
    1.  nodeclass_classifications_total (Counter)
    2.  nodeclass_classification_duration_seconds (Histogram)
    3.  nodeclass_groups_matched_total (Counter)
    4.  nodeclass_rule_errors_total (Counter)
    5.  nodeclass_merge_conflicts_total (Counter)
    6.  nodeclass_hierarchy_validations_total (Counter)
    7.  nodeclass_pattern_cache_hits_total (Counter)
    8.  nodeclass_pattern_cache_misses_total (Counter)
    9.  nodeclass_hierarchy_cache_hits_total (Counter)
    10. nodeclass_groups_total (Gauge)
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Classifications count
classifications_total = Counter(
    "nodeclass_classifications_total",
    "Total node classifications by outcome",
    labelnames=["result"],
)

# 2. Classification duration
classification_duration_seconds = Histogram(
    "nodeclass_classification_duration_seconds",
    "Node classification duration in seconds",
    buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0),
)

# 3. Group matches by match type
groups_matched_total = Counter(
    "nodeclass_groups_matched_total",
    "Total group matches by match type",
    labelnames=["match_type"],
)

# 4. Rule evaluation errors by kind
rule_errors_total = Counter(
    "nodeclass_rule_errors_total",
    "Total rule evaluation errors by kind",
    labelnames=["kind"],
)

# 5. Merge conflicts by scope
merge_conflicts_total = Counter(
    "nodeclass_merge_conflicts_total",
    "Total same-depth merge conflicts by scope",
    labelnames=["scope"],
)

# 6. Hierarchy validations
hierarchy_validations_total = Counter(
    "nodeclass_hierarchy_validations_total",
    "Total group hierarchy validations by result",
    labelnames=["result"],
)

# 7. Pattern cache hits
pattern_cache_hits_total = Counter(
    "nodeclass_pattern_cache_hits_total",
    "Total compiled pattern cache hits",
)

# 8. Pattern cache misses
pattern_cache_misses_total = Counter(
    "nodeclass_pattern_cache_misses_total",
    "Total compiled pattern cache misses",
)

# 9. Hierarchy cache hits
hierarchy_cache_hits_total = Counter(
    "nodeclass_hierarchy_cache_hits_total",
    "Total validated hierarchy cache hits",
)

# 10. Groups gauge
groups_total = Gauge(
    "nodeclass_groups_total",
    "Number of groups in the last validated group set",
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_classification(result: str, duration_seconds: float) -> None:
    """Record a classification run.

    Args:
        result: "success" or "structural_error".
        duration_seconds: Run duration in seconds.
    """
    classifications_total.labels(result=result).inc()
    classification_duration_seconds.observe(duration_seconds)


def record_group_match(match_type: str) -> None:
    """Record one matched group.

    Args:
        match_type: "pinned", "rules" or "match_all".
    """
    groups_matched_total.labels(match_type=match_type).inc()


def record_rule_error(kind: str) -> None:
    """Record a rule evaluation error.

    Args:
        kind: Error kind value.
    """
    rule_errors_total.labels(kind=kind).inc()


def record_merge_conflict(scope: str) -> None:
    """Record a merge conflict.

    Args:
        scope: Conflict scope value.
    """
    merge_conflicts_total.labels(scope=scope).inc()


def record_hierarchy_validation(result: str) -> None:
    """Record a hierarchy validation.

    Args:
        result: "valid", "cycle", "unknown_parent" or "duplicate".
    """
    hierarchy_validations_total.labels(result=result).inc()


def record_pattern_cache_hit() -> None:
    """Record a compiled pattern cache hit."""
    pattern_cache_hits_total.inc()


def record_pattern_cache_miss() -> None:
    """Record a compiled pattern cache miss."""
    pattern_cache_misses_total.inc()


def record_hierarchy_cache_hit() -> None:
    """Record a validated hierarchy cache hit."""
    hierarchy_cache_hits_total.inc()


def update_groups_count(count: int) -> None:
    """Set the groups gauge.

    Args:
        count: Number of groups in the validated group set.
    """
    groups_total.set(count)


__all__ = [
    # Metric objects
    "classifications_total",
    "classification_duration_seconds",
    "groups_matched_total",
    "rule_errors_total",
    "merge_conflicts_total",
    "hierarchy_validations_total",
    "pattern_cache_hits_total",
    "pattern_cache_misses_total",
    "hierarchy_cache_hits_total",
    "groups_total",
    # Helper functions
    "record_classification",
    "record_group_match",
    "record_rule_error",
    "record_merge_conflict",
    "record_hierarchy_validation",
    "record_pattern_cache_hit",
    "record_pattern_cache_miss",
    "record_hierarchy_cache_hit",
    "update_groups_count",
]
