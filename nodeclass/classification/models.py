# -*- coding: utf-8 -*-
"""
Classification Data Models - NodeClass Classification Engine

Pydantic v2 data models for the classification engine: the group-set
snapshot supplied by the administrative layer, the node being classified,
and the resolved configuration returned to callers.

Models:
    - Enums: RuleOperator, RuleMatchType, MatchType, ValueKind,
             RuleErrorKind, ConflictScope
    - Input: RuleValue, ClassificationRule, NodeGroup, GroupSet, Node
    - Output: RuleEvaluation, RuleEvaluationError, GroupMatch,
              ParameterConflict, HierarchyResolution,
              ResolvedConfiguration
    - Constants: OPERATOR_ALIASES and operator families

Rule values are a tagged union (``RuleValue``) so operator-specific
shape invariants are enforced when the rule is built: ``in``/``not_in``
need a list, ``regex_*`` need a pattern string, comparison operators need
a scalar, and ``exists``/``not_exists`` carry no value.

Example:
    >>> from nodeclass.classification.models import ClassificationRule
    >>> rule = ClassificationRule(fact_path="os.family", operator="=", value="RedHat")
    >>> rule.operator.value
    'eq'
"""

from __future__ import annotations

import hashlib
import json
import uuid
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import (
    BaseModel,
    Field,
    PrivateAttr,
    field_serializer,
    field_validator,
    model_validator,
)

from nodeclass.classification.fact_path import parse_fact_path


# =============================================================================
# Enumerations
# =============================================================================


class RuleOperator(str, Enum):
    """Comparison operators available to classification rules."""
    EQ = "eq"
    NE = "ne"
    REGEX_MATCH = "regex_match"
    REGEX_NOT_MATCH = "regex_not_match"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    NOT_IN = "not_in"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


class RuleMatchType(str, Enum):
    """How a group combines its rules."""
    ALL = "all"
    ANY = "any"


class MatchType(str, Enum):
    """Why a node matched a group."""
    PINNED = "pinned"
    RULES = "rules"
    MATCH_ALL = "match_all"


class ValueKind(str, Enum):
    """Tag of a RuleValue."""
    NONE = "none"
    SCALAR = "scalar"
    LIST = "list"


class RuleErrorKind(str, Enum):
    """Kinds of rule-level evaluation errors."""
    BAD_REGEX = "bad_regex"
    NON_NUMERIC_COMPARISON = "non_numeric_comparison"
    INVALID_RULE_SHAPE = "invalid_rule_shape"


class ConflictScope(str, Enum):
    """Payload section in which a merge conflict was found."""
    PARAMETERS = "parameters"
    VARIABLES = "variables"
    ENVIRONMENT = "environment"


# =============================================================================
# Constants
# =============================================================================


# Symbolic spellings used by the web UI and older group exports.
OPERATOR_ALIASES: Dict[str, RuleOperator] = {
    "=": RuleOperator.EQ,
    "==": RuleOperator.EQ,
    "!=": RuleOperator.NE,
    "~": RuleOperator.REGEX_MATCH,
    "=~": RuleOperator.REGEX_MATCH,
    "!~": RuleOperator.REGEX_NOT_MATCH,
    ">": RuleOperator.GT,
    ">=": RuleOperator.GTE,
    "<": RuleOperator.LT,
    "<=": RuleOperator.LTE,
}

LIST_OPERATORS: FrozenSet[RuleOperator] = frozenset(
    {RuleOperator.IN, RuleOperator.NOT_IN},
)
REGEX_OPERATORS: FrozenSet[RuleOperator] = frozenset(
    {RuleOperator.REGEX_MATCH, RuleOperator.REGEX_NOT_MATCH},
)
ORDERING_OPERATORS: FrozenSet[RuleOperator] = frozenset(
    {RuleOperator.GT, RuleOperator.GTE, RuleOperator.LT, RuleOperator.LTE},
)
EQUALITY_OPERATORS: FrozenSet[RuleOperator] = frozenset(
    {RuleOperator.EQ, RuleOperator.NE},
)
PRESENCE_OPERATORS: FrozenSet[RuleOperator] = frozenset(
    {RuleOperator.EXISTS, RuleOperator.NOT_EXISTS},
)

_SCALAR_TYPES = (str, int, float, bool, type(None))


# =============================================================================
# Utility
# =============================================================================


def _new_uuid() -> str:
    """Generate a new UUID4 string."""
    return str(uuid.uuid4())


def canonical_json(value: Any) -> str:
    """Serialize a JSON value deterministically (sorted keys, compact)."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def _compute_hash(content: Any) -> str:
    """Compute SHA-256 hash of JSON-serialisable content."""
    return hashlib.sha256(canonical_json(content).encode()).hexdigest()


def _coerce_id(v: Any) -> Any:
    """Accept UUIDs and integers as identifiers."""
    if isinstance(v, (uuid.UUID, int)) and not isinstance(v, bool):
        return str(v)
    return v


# =============================================================================
# Input Models
# =============================================================================


class RuleValue(BaseModel):
    """Tagged expected value of a classification rule."""
    kind: ValueKind = Field(..., description="none, scalar or list")
    scalar: Any = Field(default=None, description="Scalar payload for kind=scalar")
    items: Tuple[Any, ...] = Field(
        default=(), description="Scalar items for kind=list",
    )

    @classmethod
    def none(cls) -> RuleValue:
        return cls(kind=ValueKind.NONE)

    @classmethod
    def from_raw(cls, raw: Any) -> RuleValue:
        """Build a RuleValue from a free-form JSON value.

        Args:
            raw: A scalar, a list/tuple of scalars, or a RuleValue.

        Returns:
            Tagged RuleValue.

        Raises:
            ValueError: If the value is a map or a list holding non-scalars.
        """
        if isinstance(raw, RuleValue):
            return raw
        if isinstance(raw, (list, tuple)):
            for item in raw:
                if not isinstance(item, _SCALAR_TYPES):
                    raise ValueError(
                        f"Rule value lists may only hold scalars, got {type(item).__name__}"
                    )
            return cls(kind=ValueKind.LIST, items=tuple(raw))
        if isinstance(raw, _SCALAR_TYPES):
            return cls(kind=ValueKind.SCALAR, scalar=raw)
        raise ValueError(f"Unsupported rule value type: {type(raw).__name__}")

    @property
    def raw(self) -> Any:
        """Return the plain JSON value."""
        if self.kind == ValueKind.LIST:
            return list(self.items)
        if self.kind == ValueKind.SCALAR:
            return self.scalar
        return None


class ClassificationRule(BaseModel):
    """A single predicate over one fact path."""
    id: str = Field(default_factory=_new_uuid, description="Rule identifier")
    fact_path: str = Field(..., description="Dotted/bracket fact path")
    operator: RuleOperator = Field(..., description="Comparison operator")
    value: RuleValue = Field(
        default_factory=RuleValue.none, description="Expected value",
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_rule_id(cls, v: Any) -> Any:
        return _coerce_id(v)

    @field_validator("operator", mode="before")
    @classmethod
    def _coerce_operator(cls, v: Any) -> Any:
        """Accept symbolic aliases and any casing."""
        if isinstance(v, str):
            key = v.strip()
            if key in OPERATOR_ALIASES:
                return OPERATOR_ALIASES[key]
            return RuleOperator(key.lower())
        return v

    @field_validator("fact_path")
    @classmethod
    def _validate_fact_path(cls, v: str) -> str:
        v = v.strip()
        parse_fact_path(v)
        return v

    @field_validator("value", mode="before")
    @classmethod
    def _tag_value(cls, v: Any) -> Any:
        return RuleValue.from_raw(v)

    @model_validator(mode="after")
    def _check_shape(self) -> ClassificationRule:
        """Enforce operator-specific value shapes."""
        op = self.operator
        kind = self.value.kind

        if op in PRESENCE_OPERATORS:
            if kind != ValueKind.NONE:
                self.value = RuleValue.none()
        elif op in LIST_OPERATORS:
            if kind != ValueKind.LIST:
                raise ValueError(f"Operator '{op.value}' requires a list value")
        elif op in REGEX_OPERATORS:
            if kind != ValueKind.SCALAR or not isinstance(self.value.scalar, str):
                raise ValueError(f"Operator '{op.value}' requires a pattern string")
        elif kind != ValueKind.SCALAR:
            raise ValueError(f"Operator '{op.value}' requires a scalar value")
        return self

    @field_serializer("value")
    def _serialize_value(self, value: RuleValue) -> Any:
        return value.raw


class NodeGroup(BaseModel):
    """A named classification unit with rules, pins and a payload."""
    id: str = Field(..., description="Group identifier")
    name: str = Field(default="", description="Human-readable group name")
    description: str = Field(default="", description="Group description")
    parent_id: Optional[str] = Field(None, description="Parent group id")
    environment: Optional[str] = Field(
        None, description="Environment this group is scoped to or assigns",
    )
    is_environment_group: bool = Field(
        default=False,
        description="Assign the group's environment instead of filtering by it",
    )
    match_all_nodes: bool = Field(
        default=False,
        description="With no rules, match every node that passes the environment filter",
    )
    rule_match_type: RuleMatchType = Field(
        default=RuleMatchType.ALL, description="AND (all) or OR (any)",
    )
    rules: List[ClassificationRule] = Field(
        default_factory=list, description="Ordered classification rules",
    )
    pinned_nodes: List[str] = Field(
        default_factory=list, description="Certnames pinned to this group",
    )
    classes: List[str] = Field(
        default_factory=list, description="Classes applied to member nodes",
    )
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Class parameters",
    )
    variables: Dict[str, Any] = Field(
        default_factory=dict, description="Top-scope variables",
    )

    @field_validator("id", "parent_id", mode="before")
    @classmethod
    def _coerce_group_ids(cls, v: Any) -> Any:
        return _coerce_id(v)

    @field_validator("rule_match_type", mode="before")
    @classmethod
    def _coerce_match_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return RuleMatchType(v.strip().lower())
        return v

    @field_validator("environment")
    @classmethod
    def _blank_environment(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("pinned_nodes")
    @classmethod
    def _dedupe_pins(cls, v: List[str]) -> List[str]:
        return sorted(set(v))

    @field_validator("classes")
    @classmethod
    def _unique_classes(cls, v: List[str]) -> List[str]:
        seen = set()
        for name in v:
            if name in seen:
                raise ValueError(f"Duplicate class '{name}'")
            seen.add(name)
        return v

    @model_validator(mode="after")
    def _unique_rule_ids(self) -> NodeGroup:
        seen = set()
        for rule in self.rules:
            if rule.id in seen:
                raise ValueError(f"Duplicate rule id '{rule.id}' in group '{self.id}'")
            seen.add(rule.id)
        if not self.name:
            self.name = self.id
        return self

    def is_pinned(self, certname: str) -> bool:
        """Return True if ``certname`` is pinned to this group."""
        return certname in self.pinned_nodes


class GroupSet(BaseModel):
    """Immutable snapshot of every group definition for one classification run.

    ``version`` identifies the snapshot; when omitted it is the SHA-256 of
    the canonical JSON of the groups, so identical definitions share a
    version and cached hierarchy validations are reused.
    Lookups return the first group per id; duplicate ids are rejected by
    hierarchy validation with DuplicateGroupError.
    """
    groups: List[NodeGroup] = Field(default_factory=list, description="Group definitions")
    version: str = Field(default="", description="Snapshot version")

    _index: Dict[str, NodeGroup] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._index = {}
        for group in self.groups:
            self._index.setdefault(group.id, group)
        if not self.version:
            self.version = self.compute_hash()

    def compute_hash(self) -> str:
        """Compute SHA-256 hash of the group definitions.

        Returns:
            Hex-encoded SHA-256 hash.
        """
        return _compute_hash(
            [g.model_dump(mode="json") for g in self.groups],
        )

    def get(self, group_id: str) -> Optional[NodeGroup]:
        """Look up a group by id."""
        return self._index.get(group_id)

    @property
    def group_ids(self) -> List[str]:
        return [g.id for g in self.groups]

    def __len__(self) -> int:
        return len(self.groups)


class Node(BaseModel):
    """The node being classified."""
    certname: str = Field(..., description="Unique node identifier")
    facts: Dict[str, Any] = Field(default_factory=dict, description="Fact tree")
    environment: Optional[str] = Field(None, description="Reported environment")


# =============================================================================
# Output Models
# =============================================================================


class RuleEvaluationError(BaseModel):
    """A rule that could not be evaluated for one node."""
    group_id: Optional[str] = Field(None, description="Owning group")
    rule_id: str = Field(..., description="Offending rule")
    fact_path: str = Field(..., description="Rule fact path")
    kind: RuleErrorKind = Field(..., description="Error category")
    message: str = Field(..., description="Human-readable detail")


class RuleEvaluation(BaseModel):
    """Outcome of evaluating one rule against one node."""
    rule_id: str = Field(..., description="Evaluated rule")
    matched: bool = Field(..., description="Whether the rule matched")
    fact_present: bool = Field(..., description="Whether the fact path resolved")
    fact_value: Any = Field(default=None, description="Resolved fact value")
    error: Optional[RuleEvaluationError] = Field(
        None, description="Evaluation error, if any",
    )


class GroupMatch(BaseModel):
    """A group the node matched."""
    group_id: str = Field(..., description="Group identifier")
    name: str = Field(..., description="Group name")
    depth: int = Field(..., ge=0, description="Hierarchy depth")
    match_type: MatchType = Field(..., description="Why the node matched")
    matched_rule_ids: List[str] = Field(
        default_factory=list, description="Rules that evaluated true",
    )


class ParameterConflict(BaseModel):
    """Same-depth groups disagree on the value of one key."""
    key: str = Field(..., description="Conflicting key")
    scope: ConflictScope = Field(..., description="Payload section")
    depth: int = Field(..., ge=0, description="Depth at which groups disagree")
    group_ids: List[str] = Field(..., description="Disagreeing groups, ascending")
    chosen_value: Any = Field(default=None, description="Value that was applied")
    values: Dict[str, Any] = Field(
        default_factory=dict, description="Value proposed by each group",
    )


class HierarchyResolution(BaseModel):
    """Validated, linearized group hierarchy."""
    group_set_version: str = Field(..., description="Validated snapshot version")
    depths: Dict[str, int] = Field(default_factory=dict, description="Group depth")
    parents: Dict[str, Optional[str]] = Field(
        default_factory=dict, description="Group parent",
    )
    order: List[str] = Field(
        default_factory=list, description="Group ids by depth, then id",
    )

    def depth(self, group_id: str) -> int:
        """Return the depth of ``group_id``.

        Raises:
            KeyError: If the group is not part of the resolution.
        """
        return self.depths[group_id]

    def ancestors(self, group_id: str) -> List[str]:
        """Return ancestor ids from the parent up to the root."""
        chain: List[str] = []
        current = self.parents.get(group_id)
        while current is not None:
            chain.append(current)
            current = self.parents.get(current)
        return chain

    @property
    def roots(self) -> List[str]:
        return [gid for gid in self.order if self.depths[gid] == 0]


class ResolvedConfiguration(BaseModel):
    """Effective configuration of one node against one group set."""
    certname: str = Field(..., description="Classified node")
    environment: Optional[str] = Field(None, description="Resolved environment")
    matched_group_ids: List[str] = Field(
        default_factory=list, description="Matched groups by depth, then id",
    )
    groups: List[GroupMatch] = Field(
        default_factory=list, description="Match details per group",
    )
    classes: List[str] = Field(
        default_factory=list, description="Sorted, de-duplicated classes",
    )
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Merged parameters")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Merged variables")
    conflicts: List[ParameterConflict] = Field(
        default_factory=list, description="Same-depth disagreements",
    )
    errors: List[RuleEvaluationError] = Field(
        default_factory=list, description="Rule evaluation errors",
    )
    group_set_version: str = Field(default="", description="Group set used")
    provenance_hash: str = Field(
        default="", description="SHA-256 hash of the result",
    )

    def compute_hash(self) -> str:
        """Compute SHA-256 hash of the result for provenance tracking.

        Returns:
            Hex-encoded SHA-256 hash.
        """
        return _compute_hash(
            self.model_dump(mode="json", exclude={"provenance_hash"}),
        )

    def to_enc(self) -> Dict[str, Any]:
        """Render a Puppet External Node Classifier document.

        Variables become top-scope ENC parameters; class parameters are
        laid over them, so a parameter wins over a variable with the same
        key.
        """
        enc_parameters: Dict[str, Any] = dict(self.variables)
        enc_parameters.update(self.parameters)
        document: Dict[str, Any] = {
            "classes": {name: {} for name in self.classes},
            "parameters": enc_parameters,
        }
        if self.environment:
            document["environment"] = self.environment
        return document


__all__ = [
    # Enumerations
    "RuleOperator",
    "RuleMatchType",
    "MatchType",
    "ValueKind",
    "RuleErrorKind",
    "ConflictScope",
    # Constants
    "OPERATOR_ALIASES",
    "LIST_OPERATORS",
    "REGEX_OPERATORS",
    "ORDERING_OPERATORS",
    "EQUALITY_OPERATORS",
    "PRESENCE_OPERATORS",
    # Helpers
    "canonical_json",
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
]
