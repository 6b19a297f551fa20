# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Any, Dict, List

import pytest
import yaml

from nodeclass.classification.config import ClassificationConfig, reset_config, set_config
from nodeclass.classification.models import GroupSet, Node, NodeGroup
from nodeclass.classification.setup import reset_classification_service


@pytest.fixture(autouse=True)
def isolated_config():
    """Give every test a fresh default configuration and service."""
    set_config(ClassificationConfig())
    reset_classification_service()
    yield
    reset_classification_service()
    reset_config()


@pytest.fixture
def make_group():
    """Factory for NodeGroup objects with compact rule tuples.

    Rules may be given as ``(fact_path, operator, value)`` tuples; rule ids
    are derived from the group id and position.
    """
    def _make(group_id: str, rules=(), **kwargs: Any) -> NodeGroup:
        built = []
        for index, rule in enumerate(rules):
            if isinstance(rule, tuple):
                fact_path, operator = rule[0], rule[1]
                entry: Dict[str, Any] = {
                    "id": f"{group_id}-r{index}",
                    "fact_path": fact_path,
                    "operator": operator,
                }
                if len(rule) > 2:
                    entry["value"] = rule[2]
                built.append(entry)
            else:
                built.append(rule)
        return NodeGroup(id=group_id, rules=built, **kwargs)

    return _make


@pytest.fixture
def web01_facts() -> Dict[str, Any]:
    """Facts of the reference web node."""
    return {
        "os": {"family": "RedHat", "release": {"major": "9", "full": "9.3"}},
        "environment": "production",
        "kernel": "Linux",
        "processors": {"count": 4},
        "memory": {"system": {"total_bytes": 8589934592}},
        "mountpoints": [
            {"device": "/dev/sda1", "path": "/"},
            {"device": "/dev/sda2", "path": "/var"},
        ],
        "is_virtual": True,
    }


@pytest.fixture
def web01(web01_facts) -> Node:
    return Node(certname="web01", facts=web01_facts, environment="production")


@pytest.fixture
def example_groups(make_group) -> List[NodeGroup]:
    """redhat-base (root) and prod-web (child) from the reference scenario."""
    return [
        make_group(
            "redhat-base",
            rules=[("os.family", "eq", "RedHat")],
            classes=["base"],
        ),
        make_group(
            "prod-web",
            rules=[("environment", "eq", "production")],
            parent_id="redhat-base",
            classes=["nginx"],
            parameters={"port": 80},
        ),
    ]


@pytest.fixture
def example_group_set(example_groups) -> GroupSet:
    return GroupSet(groups=example_groups)


@pytest.fixture
def groups_file(tmp_path: Path, example_groups) -> Path:
    """The reference groups written as YAML."""
    path = tmp_path / "groups.yaml"
    path.write_text(yaml.safe_dump(
        {"groups": [g.model_dump(mode="json") for g in example_groups]},
        sort_keys=False,
    ))
    return path


@pytest.fixture
def facts_file(tmp_path: Path, web01_facts) -> Path:
    path = tmp_path / "web01.yaml"
    path.write_text(yaml.safe_dump(web01_facts))
    return path


@pytest.fixture
def cyclic_groups_file(tmp_path: Path) -> Path:
    path = tmp_path / "cyclic.yaml"
    path.write_text(yaml.safe_dump([
        {"id": "a", "parent_id": "b"},
        {"id": "b", "parent_id": "a"},
    ]))
    return path
