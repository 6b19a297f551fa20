# -*- coding: utf-8 -*-
"""Tests for ClassificationConfig and its singleton accessors."""

from nodeclass.classification.config import (
    ClassificationConfig,
    get_config,
    reset_config,
    set_config,
)


class TestClassificationConfig:

    def test_defaults(self):
        config = ClassificationConfig()
        assert config.environment_filter_enabled is True
        assert config.inject_clientcert is True
        assert config.max_workers == 1
        assert config.pattern_cache_size == 1024

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("NODECLASS_ENVIRONMENT_FILTER_ENABLED", "false")
        monkeypatch.setenv("NODECLASS_MAX_WORKERS", "8")
        monkeypatch.setenv("NODECLASS_INJECT_CLIENTCERT", "YES")
        config = ClassificationConfig.from_env()
        assert config.environment_filter_enabled is False
        assert config.max_workers == 8
        assert config.inject_clientcert is True

    def test_invalid_integer_falls_back(self, monkeypatch):
        monkeypatch.setenv("NODECLASS_MAX_GROUPS", "lots")
        assert ClassificationConfig.from_env().max_groups == 10000


class TestSingleton:

    def test_set_and_get(self):
        custom = ClassificationConfig(max_workers=3)
        set_config(custom)
        assert get_config() is custom

    def test_reset_reads_env(self, monkeypatch):
        monkeypatch.setenv("NODECLASS_PATTERN_CACHE_SIZE", "64")
        reset_config()
        assert get_config().pattern_cache_size == 64
        assert get_config() is get_config()
