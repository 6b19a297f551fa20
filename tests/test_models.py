# -*- coding: utf-8 -*-
"""Tests for the classification data models."""

import uuid

import pytest
from pydantic import ValidationError

from nodeclass.classification.models import (
    GroupSet,
    NodeGroup,
    ResolvedConfiguration,
    RuleMatchType,
    RuleValue,
    ValueKind,
)


class TestRuleValue:

    def test_tags(self):
        assert RuleValue.from_raw("x").kind == ValueKind.SCALAR
        assert RuleValue.from_raw(None).kind == ValueKind.SCALAR
        assert RuleValue.from_raw([1, "a"]).kind == ValueKind.LIST
        assert RuleValue.none().raw is None

    def test_raw_list(self):
        assert RuleValue.from_raw((1, 2)).raw == [1, 2]


class TestNodeGroup:

    def test_name_defaults_to_id(self):
        assert NodeGroup(id="web").name == "web"

    def test_integer_and_uuid_ids(self):
        gid = uuid.uuid4()
        group = NodeGroup(id=gid, parent_id=3)
        assert group.id == str(gid)
        assert group.parent_id == "3"

    def test_duplicate_classes_rejected(self):
        with pytest.raises(ValidationError):
            NodeGroup(id="g", classes=["ntp", "ntp"])

    def test_duplicate_rule_ids_rejected(self):
        with pytest.raises(ValidationError):
            NodeGroup(id="g", rules=[
                {"id": "r", "fact_path": "a", "operator": "exists"},
                {"id": "r", "fact_path": "b", "operator": "exists"},
            ])

    def test_pins_deduplicated(self):
        group = NodeGroup(id="g", pinned_nodes=["b", "a", "b"])
        assert group.pinned_nodes == ["a", "b"]
        assert group.is_pinned("a")

    def test_match_type_case_insensitive(self):
        assert NodeGroup(id="g", rule_match_type="ANY").rule_match_type == RuleMatchType.ANY

    def test_rule_ids_generated(self):
        group = NodeGroup(id="g", rules=[{"fact_path": "a", "operator": "exists"}])
        assert uuid.UUID(group.rules[0].id)


class TestGroupSet:

    def test_version_is_content_hash(self):
        first = GroupSet(groups=[NodeGroup(id="a")])
        second = GroupSet(groups=[NodeGroup(id="a")])
        changed = GroupSet(groups=[NodeGroup(id="a", classes=["x"])])
        assert first.version == second.version
        assert first.version != changed.version
        assert len(first.version) == 64

    def test_explicit_version_kept(self):
        assert GroupSet(groups=[], version="v1").version == "v1"

    def test_lookup(self):
        group_set = GroupSet(groups=[NodeGroup(id="a"), NodeGroup(id="b")])
        assert group_set.get("b").id == "b"
        assert group_set.get("c") is None
        assert len(group_set) == 2

    def test_duplicate_ids_left_to_hierarchy_validation(self):
        group_set = GroupSet(groups=[
            NodeGroup(id="a", classes=["first"]),
            NodeGroup(id="a", classes=["second"]),
        ])
        assert group_set.get("a").classes == ["first"]
        assert len(group_set.groups) == 2


class TestResolvedConfiguration:

    def test_hash_ignores_provenance_field(self):
        result = ResolvedConfiguration(certname="n1", classes=["a"])
        digest = result.compute_hash()
        result.provenance_hash = digest
        assert result.compute_hash() == digest

    def test_enc_without_environment(self):
        enc = ResolvedConfiguration(certname="n1", classes=["a"]).to_enc()
        assert enc == {"classes": {"a": {}}, "parameters": {}}
