# -*- coding: utf-8 -*-
"""Tests for fact path parsing and resolution."""

import pytest

from nodeclass.classification.fact_path import (
    ABSENT,
    is_absent,
    parse_fact_path,
    resolve_fact,
)


class TestParseFactPath:
    """Tests for parse_fact_path."""

    def test_dotted_path(self):
        assert parse_fact_path("os.release.major") == ("os", "release", "major")

    def test_bracket_index(self):
        assert parse_fact_path("mountpoints[0].device") == ("mountpoints", 0, "device")

    def test_consecutive_indexes(self):
        assert parse_fact_path("matrix[1][2]") == ("matrix", 1, 2)

    def test_single_segment(self):
        assert parse_fact_path("kernel") == ("kernel",)

    @pytest.mark.parametrize("path", [
        "",
        "   ",
        "a..b",
        ".a",
        "a.",
        "a[x]",
        "a[-1]",
        "a[0",
        "a]",
        "a[0]b",
    ])
    def test_malformed_paths_rejected(self, path):
        with pytest.raises(ValueError):
            parse_fact_path(path)


class TestResolveFact:
    """Tests for resolve_fact."""

    @pytest.fixture
    def facts(self):
        return {
            "os": {"family": "RedHat", "release": {"major": "9"}},
            "mountpoints": [{"device": "/dev/sda1"}, {"device": "/dev/sda2"}],
            "empty": None,
            "kernel": "Linux",
        }

    def test_nested_map(self, facts):
        assert resolve_fact(facts, "os.release.major") == "9"

    def test_sequence_index(self, facts):
        assert resolve_fact(facts, "mountpoints[1].device") == "/dev/sda2"

    def test_subtree_is_returned(self, facts):
        assert resolve_fact(facts, "os.release") == {"major": "9"}

    def test_missing_key_is_absent(self, facts):
        assert resolve_fact(facts, "os.architecture") is ABSENT

    def test_index_out_of_range_is_absent(self, facts):
        assert resolve_fact(facts, "mountpoints[5].device") is ABSENT

    def test_descending_into_scalar_is_absent(self, facts):
        assert resolve_fact(facts, "kernel.version") is ABSENT

    def test_indexing_a_string_is_absent(self, facts):
        assert resolve_fact(facts, "kernel[0]") is ABSENT

    def test_indexing_a_map_is_absent(self, facts):
        assert resolve_fact(facts, "os[0]") is ABSENT

    def test_null_fact_is_present(self, facts):
        value = resolve_fact(facts, "empty")
        assert value is None
        assert not is_absent(value)

    def test_pre_parsed_segments(self, facts):
        assert resolve_fact(facts, ("mountpoints", 0, "device")) == "/dev/sda1"

    def test_malformed_path_raises(self, facts):
        with pytest.raises(ValueError):
            resolve_fact(facts, "os..family")

    def test_absent_marker(self):
        assert not ABSENT
        assert repr(ABSENT) == "ABSENT"
        assert is_absent(ABSENT)
