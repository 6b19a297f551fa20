# -*- coding: utf-8 -*-
"""Tests for the nodeclass CLI."""

import json

import pytest
import yaml
from typer.testing import CliRunner

from nodeclass.cli.main import app


@pytest.fixture
def runner():
    return CliRunner()


class TestClassifyCommand:

    def test_json_output(self, runner, groups_file, facts_file):
        result = runner.invoke(app, [
            "classify", "web01", "--groups", str(groups_file),
            "--facts", str(facts_file), "--environment", "production",
            "--format", "json",
        ])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["matched_group_ids"] == ["redhat-base", "prod-web"]
        assert data["classes"] == ["base", "nginx"]
        assert data["parameters"] == {"port": 80}

    def test_enc_output(self, runner, groups_file, facts_file):
        result = runner.invoke(app, [
            "classify", "web01", "-g", str(groups_file), "-f", str(facts_file),
            "-e", "production", "--format", "enc",
        ])
        assert result.exit_code == 0, result.output
        assert yaml.safe_load(result.output) == {
            "classes": {"base": {}, "nginx": {}},
            "parameters": {"port": 80},
            "environment": "production",
        }

    def test_yaml_output(self, runner, groups_file, facts_file):
        result = runner.invoke(app, [
            "classify", "web01", "-g", str(groups_file), "-f", str(facts_file),
            "--format", "yaml",
        ])
        assert result.exit_code == 0, result.output
        assert yaml.safe_load(result.output)["certname"] == "web01"

    def test_table_output(self, runner, groups_file, facts_file):
        result = runner.invoke(app, [
            "classify", "web01", "-g", str(groups_file), "-f", str(facts_file),
        ])
        assert result.exit_code == 0, result.output
        assert "redhat-base" in result.output
        assert "nginx" in result.output

    def test_unknown_format(self, runner, groups_file, facts_file):
        result = runner.invoke(app, [
            "classify", "web01", "-g", str(groups_file), "-f", str(facts_file),
            "--format", "xml",
        ])
        assert result.exit_code == 2

    def test_cycle_refused(self, runner, cyclic_groups_file, facts_file):
        result = runner.invoke(app, [
            "classify", "web01", "-g", str(cyclic_groups_file), "-f", str(facts_file),
        ])
        assert result.exit_code == 1
        assert "NC_STRUCT_CYCLE_DETECTED_ERROR" in result.output

    def test_missing_groups_file(self, runner, tmp_path, facts_file):
        result = runner.invoke(app, [
            "classify", "web01", "-g", str(tmp_path / "nope.yaml"), "-f", str(facts_file),
        ])
        assert result.exit_code == 2


class TestValidateCommand:

    def test_valid_hierarchy(self, runner, groups_file):
        result = runner.invoke(app, ["validate", "--groups", str(groups_file)])
        assert result.exit_code == 0, result.output
        assert "prod-web" in result.output
        assert "Hierarchy valid" in result.output

    def test_cycle_exits_1(self, runner, cyclic_groups_file):
        result = runner.invoke(app, ["validate", "--groups", str(cyclic_groups_file)])
        assert result.exit_code == 1
        assert "Invalid hierarchy" in result.output


class TestMembersCommand:

    @pytest.fixture
    def nodes_file(self, tmp_path):
        path = tmp_path / "nodes.yaml"
        path.write_text(yaml.safe_dump([
            {"certname": "web02", "facts": {"os": {"family": "RedHat"}}},
            {"certname": "db01", "facts": {"os": {"family": "Debian"}}},
            {"certname": "web01", "facts": {"os": {"family": "RedHat"}}},
        ]))
        return path

    def test_members_json(self, runner, groups_file, nodes_file):
        result = runner.invoke(app, [
            "members", "redhat-base", "-g", str(groups_file), "-n", str(nodes_file),
            "--format", "json",
        ])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {
            "group_id": "redhat-base", "nodes": ["web01", "web02"],
        }

    def test_members_unknown_group(self, runner, groups_file, nodes_file):
        result = runner.invoke(app, [
            "members", "ghost", "-g", str(groups_file), "-n", str(nodes_file),
        ])
        assert result.exit_code == 1
        assert "does not exist" in result.output


def test_version(runner):
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "nodeclass" in result.output
