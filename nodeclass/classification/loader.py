# -*- coding: utf-8 -*-
"""
Definition Loaders - NodeClass Classification Engine

Reads group definitions, fact trees and node inventories from YAML or JSON
files. The format is chosen by extension (``.json`` is parsed with the
json module, anything else with ``yaml.safe_load``, which also accepts
JSON).

Accepted layouts:
    - Group set: a list of groups, or a mapping with ``groups`` and an
      optional ``version``.
    - Facts: a fact mapping, or the ``puppet facts`` layout
      ``{"name": certname, "values": {...}}``.
    - Nodes: a list of ``{certname, facts, environment}`` entries, or a
      mapping with a ``nodes`` list.

Every failure (unreadable file, parse error, schema violation) is raised
as ``GroupSetLoadError`` carrying the path and the underlying cause.

Example:
    >>> from nodeclass.classification.loader import load_group_set
    >>> group_set = load_group_set("groups.yaml")
    >>> len(group_set)
    12
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import ValidationError

from nodeclass.classification.models import GroupSet, Node
from nodeclass.exceptions import GroupSetLoadError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_document(path: PathLike) -> Any:
    """Parse a YAML or JSON file.

    Args:
        path: File to read.

    Returns:
        Parsed document.

    Raises:
        GroupSetLoadError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        logger.error("Failed to load %s: %s", path, e)
        raise GroupSetLoadError(
            message=f"Failed to load {path}: {e}",
            path=str(path),
            cause=e,
        ) from e
    logger.debug("Loaded document from %s", path)
    return data


def load_group_set(path: PathLike) -> GroupSet:
    """Load a group set snapshot.

    Args:
        path: YAML or JSON group definitions.

    Returns:
        Validated GroupSet (hierarchy not yet checked).

    Raises:
        GroupSetLoadError: If the file is unreadable or malformed.
    """
    data = read_document(path)
    if data is None:
        data = []
    if isinstance(data, list):
        data = {"groups": data}
    if not isinstance(data, dict):
        raise GroupSetLoadError(
            message=f"Group definitions in {path} must be a list or a mapping",
            path=str(path),
        )

    try:
        group_set = GroupSet.model_validate(data)
    except ValidationError as e:
        raise GroupSetLoadError(
            message=f"Invalid group definitions in {path}: {e.error_count()} error(s)",
            path=str(path),
            cause=e,
        ) from e

    logger.info(
        "Loaded %d groups from %s (version %s)",
        len(group_set), path, group_set.version[:16],
    )
    return group_set


def load_facts(path: PathLike) -> Dict[str, Any]:
    """Load a node's fact tree.

    Raises:
        GroupSetLoadError: If the file is unreadable or not a mapping.
    """
    data = read_document(path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise GroupSetLoadError(
            message=f"Facts in {path} must be a mapping",
            path=str(path),
        )
    if "values" in data and "name" in data and isinstance(data["values"], dict):
        return data["values"]
    return data


def load_nodes(path: PathLike) -> List[Node]:
    """Load a node inventory.

    Args:
        path: YAML or JSON node list.

    Returns:
        Nodes in file order.

    Raises:
        GroupSetLoadError: If the file is unreadable or malformed.
    """
    data = read_document(path)
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("nodes", [])
    if not isinstance(data, list):
        raise GroupSetLoadError(
            message=f"Node inventory in {path} must be a list",
            path=str(path),
        )

    try:
        nodes = [Node.model_validate(entry) for entry in data]
    except ValidationError as e:
        raise GroupSetLoadError(
            message=f"Invalid node inventory in {path}: {e.error_count()} error(s)",
            path=str(path),
            cause=e,
        ) from e

    logger.info("Loaded %d nodes from %s", len(nodes), path)
    return nodes


__all__ = [
    "read_document",
    "load_group_set",
    "load_facts",
    "load_nodes",
]
