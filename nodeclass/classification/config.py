# -*- coding: utf-8 -*-
"""
Classification Configuration - NodeClass Classification Engine

Centralized configuration for the classification engine covering:
- Environment pre-filtering of environment-scoped groups
- The ``clientcert`` pseudo-fact
- Regex pattern and hierarchy cache sizes
- Batch classification worker count
- Group-set capacity limits
- Rule error logging

All settings can be overridden via environment variables with the
``NODECLASS_`` prefix (e.g. ``NODECLASS_ENVIRONMENT_FILTER_ENABLED``).

Example:
    >>> from nodeclass.classification.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.environment_filter_enabled, cfg.pattern_cache_size)
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "NODECLASS_"


# ---------------------------------------------------------------------------
# ClassificationConfig
# ---------------------------------------------------------------------------


@dataclass
class ClassificationConfig:
    """Complete configuration for the classification engine.

    All attributes can be overridden via environment variables using the
    ``NODECLASS_`` prefix.

    Attributes:
        environment_filter_enabled: Exclude environment-scoped groups whose
            environment differs from the node's environment.
        inject_clientcert: Expose the certname as the ``clientcert`` fact
            when the fact tree does not already carry one.
        pattern_cache_size: Maximum number of compiled regex patterns kept.
        hierarchy_cache_size: Maximum number of validated group-set
            versions kept.
        max_workers: Thread pool size for batch classification (1 = serial).
        max_groups: Maximum number of groups in one group set.
        max_rules_per_group: Maximum number of rules on one group.
        log_rule_errors: Log a warning for every rule evaluation error.
    """

    # -- Matching ------------------------------------------------------------
    environment_filter_enabled: bool = True
    inject_clientcert: bool = True

    # -- Caching -------------------------------------------------------------
    pattern_cache_size: int = 1024
    hierarchy_cache_size: int = 16

    # -- Batch ---------------------------------------------------------------
    max_workers: int = 1

    # -- Capacity limits -----------------------------------------------------
    max_groups: int = 10000
    max_rules_per_group: int = 500

    # -- Diagnostics ---------------------------------------------------------
    log_rule_errors: bool = True

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> ClassificationConfig:
        """Build a ClassificationConfig from environment variables.

        Every field can be overridden via ``NODECLASS_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).
        Integer values are parsed via ``int()``; invalid values fall back
        to the default with a warning.

        Returns:
            Populated ClassificationConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        config = cls(
            environment_filter_enabled=_bool(
                "ENVIRONMENT_FILTER_ENABLED", cls.environment_filter_enabled,
            ),
            inject_clientcert=_bool("INJECT_CLIENTCERT", cls.inject_clientcert),
            pattern_cache_size=_int("PATTERN_CACHE_SIZE", cls.pattern_cache_size),
            hierarchy_cache_size=_int(
                "HIERARCHY_CACHE_SIZE", cls.hierarchy_cache_size,
            ),
            max_workers=_int("MAX_WORKERS", cls.max_workers),
            max_groups=_int("MAX_GROUPS", cls.max_groups),
            max_rules_per_group=_int(
                "MAX_RULES_PER_GROUP", cls.max_rules_per_group,
            ),
            log_rule_errors=_bool("LOG_RULE_ERRORS", cls.log_rule_errors),
        )

        logger.info(
            "ClassificationConfig loaded: env_filter=%s, clientcert=%s, "
            "pattern_cache=%d, max_workers=%d, max_groups=%d",
            config.environment_filter_enabled,
            config.inject_clientcert,
            config.pattern_cache_size,
            config.max_workers,
            config.max_groups,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[ClassificationConfig] = None
_config_lock = threading.Lock()


def get_config() -> ClassificationConfig:
    """Return the singleton ClassificationConfig, creating from env if needed.

    Returns:
        ClassificationConfig singleton instance.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = ClassificationConfig.from_env()
    return _config_instance


def set_config(config: ClassificationConfig) -> None:
    """Replace the singleton ClassificationConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("ClassificationConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "ClassificationConfig",
    "get_config",
    "set_config",
    "reset_config",
]
