# -*- coding: utf-8 -*-
"""
Fact Path Resolver - NodeClass Classification Engine

Navigates a node's fact tree with a path string that uses ``.`` for map
descent and ``[n]`` for sequence indexing, e.g. ``os.release.major`` or
``mountpoints[0].device``.

A missing segment, an out-of-range index, or a scalar reached before the
end of the path yields the ``ABSENT`` marker. Absence is an ordinary
result, never an exception; a JSON ``null`` fact is present and resolves
to ``None``.

Example:
    >>> from nodeclass.classification.fact_path import ABSENT, resolve_fact
    >>> resolve_fact({"os": {"family": "RedHat"}}, "os.family")
    'RedHat'
    >>> resolve_fact({"os": {}}, "os.family") is ABSENT
    True
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Mapping, Sequence, Tuple, Union


class _Absent:
    """Marker for a fact path that does not resolve to a value."""

    _instance = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()

# A parsed segment is a map key (str) or a sequence index (int).
PathSegment = Union[str, int]


def is_absent(value: Any) -> bool:
    """Return True if ``value`` is the ABSENT marker."""
    return value is ABSENT


@lru_cache(maxsize=4096)
def parse_fact_path(path: str) -> Tuple[PathSegment, ...]:
    """Parse a dotted/bracket fact path into segments.

    Args:
        path: Path string such as ``networking.interfaces.eth0.ip`` or
            ``disks[1].size``.

    Returns:
        Tuple of segments; ``str`` for map keys and ``int`` for indexes.

    Raises:
        ValueError: If the path is empty or syntactically malformed.
    """
    if not isinstance(path, str) or not path.strip():
        raise ValueError("Fact path must be a non-empty string")

    segments: list = []
    key_chars: list = []
    i = 0
    length = len(path)
    # True right after a '.', where a key must follow
    expect_key = True

    while i < length:
        ch = path[i]
        if ch == ".":
            if key_chars:
                segments.append("".join(key_chars))
                key_chars = []
            elif expect_key:
                raise ValueError(f"Empty segment in fact path '{path}' at {i}")
            expect_key = True
            i += 1
        elif ch == "[":
            if key_chars:
                segments.append("".join(key_chars))
                key_chars = []
            elif expect_key and segments:
                raise ValueError(f"Index must follow a key in fact path '{path}'")
            close = path.find("]", i)
            if close == -1:
                raise ValueError(f"Unterminated index in fact path '{path}'")
            raw = path[i + 1:close].strip()
            if not raw.isdigit():
                raise ValueError(
                    f"Index '{raw}' in fact path '{path}' is not a non-negative integer"
                )
            segments.append(int(raw))
            expect_key = False
            i = close + 1
            if i < length and path[i] not in ".[":
                raise ValueError(
                    f"Unexpected '{path[i]}' after index in fact path '{path}'"
                )
        elif ch == "]":
            raise ValueError(f"Unbalanced ']' in fact path '{path}'")
        else:
            if not expect_key and not key_chars:
                raise ValueError(f"Missing '.' before key in fact path '{path}'")
            key_chars.append(ch)
            expect_key = False
            i += 1

    if key_chars:
        segments.append("".join(key_chars))
    elif expect_key:
        raise ValueError(f"Fact path '{path}' ends with '.'")

    return tuple(segments)


def resolve_fact(facts: Any, path: Union[str, Sequence[PathSegment]]) -> Any:
    """Resolve a fact path against a fact tree.

    Args:
        facts: Nested structure of maps, sequences and scalars.
        path: Path string or pre-parsed segments.

    Returns:
        The value at the path, or ``ABSENT``.

    Raises:
        ValueError: If ``path`` is a malformed string.
    """
    segments = parse_fact_path(path) if isinstance(path, str) else path
    current = facts

    for segment in segments:
        if isinstance(segment, int):
            if isinstance(current, (str, bytes)) or not isinstance(current, Sequence):
                return ABSENT
            if segment >= len(current):
                return ABSENT
            current = current[segment]
        else:
            if not isinstance(current, Mapping):
                return ABSENT
            if segment not in current:
                return ABSENT
            current = current[segment]

    return current


__all__ = [
    "ABSENT",
    "PathSegment",
    "is_absent",
    "parse_fact_path",
    "resolve_fact",
]
