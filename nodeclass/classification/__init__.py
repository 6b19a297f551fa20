# -*- coding: utf-8 -*-
"""
NodeClass Classification Engine
===============================

Resolves, for one managed node, which configuration groups it belongs to
and what effective configuration it receives. It supports:

- Fact path resolution over nested fact trees (``os.release.major``,
  ``disks[0].size``)
- Twelve rule operators with numeric normalization and cached regexes
- Pinned nodes, AND/OR rule groups and environment-scoped groups
- Single-parent group hierarchies with cycle detection
- Depth-precedence merge of classes, parameters, variables and
  environment with same-depth conflict reporting
- Puppet External Node Classifier rendering
- Prometheus metrics and a thread-safe service facade

Key Components:
    - fact_path: path parsing and ABSENT-aware resolution
    - rule_evaluator: RuleEvaluator and PatternCache
    - group_matcher: GroupMatcher
    - hierarchy: HierarchyResolver and HierarchyCache
    - merge_engine: MergeEngine
    - classifier: Classifier orchestrator
    - loader: YAML/JSON loaders for groups, facts and nodes
    - config: ClassificationConfig with NODECLASS_ env prefix
    - metrics: Prometheus metrics
    - setup: ClassificationService facade

Example:
    >>> from nodeclass.classification import ClassificationService, Node
    >>> service = ClassificationService()
    >>> service.startup()
    >>> result = service.classify(Node(certname="web01", facts=facts), group_set)
    >>> print(result.classes)

    >>> from nodeclass.classification import classify
    >>> result = classify("web01", facts, "production", groups)
"""

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from nodeclass.classification.config import (
    ClassificationConfig,
    get_config,
    set_config,
    reset_config,
)

# ---------------------------------------------------------------------------
# Models (enums, inputs, outputs, constants)
# ---------------------------------------------------------------------------
from nodeclass.classification.models import (
    # Enumerations
    RuleOperator,
    RuleMatchType,
    MatchType,
    ValueKind,
    RuleErrorKind,
    ConflictScope,
    # Constants
    OPERATOR_ALIASES,
    # Input models
    RuleValue,
    ClassificationRule,
    NodeGroup,
    GroupSet,
    Node,
    # Output models
    RuleEvaluationError,
    RuleEvaluation,
    GroupMatch,
    ParameterConflict,
    HierarchyResolution,
    ResolvedConfiguration,
)

# ---------------------------------------------------------------------------
# Core components
# ---------------------------------------------------------------------------
from nodeclass.classification.fact_path import (
    ABSENT,
    is_absent,
    parse_fact_path,
    resolve_fact,
)
from nodeclass.classification.rule_evaluator import PatternCache, RuleEvaluator
from nodeclass.classification.group_matcher import GroupMatcher, GroupMatchOutcome
from nodeclass.classification.hierarchy import HierarchyCache, HierarchyResolver
from nodeclass.classification.merge_engine import MergeEngine, MergeResult
from nodeclass.classification.classifier import (
    Classifier,
    classify,
    validate_hierarchy,
)
from nodeclass.classification.loader import (
    load_facts,
    load_group_set,
    load_nodes,
)

# ---------------------------------------------------------------------------
# Service setup facade
# ---------------------------------------------------------------------------
from nodeclass.classification.setup import (
    ClassificationService,
    configure_classification_service,
    get_classification_service,
    reset_classification_service,
)

__all__ = [
    # Configuration
    "ClassificationConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Enumerations
    "RuleOperator",
    "RuleMatchType",
    "MatchType",
    "ValueKind",
    "RuleErrorKind",
    "ConflictScope",
    # Constants
    "OPERATOR_ALIASES",
    # Input models
    "RuleValue",
    "ClassificationRule",
    "NodeGroup",
    "GroupSet",
    "Node",
    # Output models
    "RuleEvaluationError",
    "RuleEvaluation",
    "GroupMatch",
    "ParameterConflict",
    "HierarchyResolution",
    "ResolvedConfiguration",
    # Fact paths
    "ABSENT",
    "is_absent",
    "parse_fact_path",
    "resolve_fact",
    # Core components
    "PatternCache",
    "RuleEvaluator",
    "GroupMatcher",
    "GroupMatchOutcome",
    "HierarchyCache",
    "HierarchyResolver",
    "MergeEngine",
    "MergeResult",
    "Classifier",
    "classify",
    "validate_hierarchy",
    # Loaders
    "load_facts",
    "load_group_set",
    "load_nodes",
    # Service facade
    "ClassificationService",
    "configure_classification_service",
    "get_classification_service",
    "reset_classification_service",
]
