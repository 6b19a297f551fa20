"""NodeClass Exception Hierarchy.

Exceptions raised by the classification engine and its loaders. Every
exception carries a stable error code and a context dictionary so callers
(group-editing workflows, the CLI, report views) can render the failure
without parsing the message.

Exception Hierarchy:
    NodeClassException (base)
    ├── StructuralError
    │   ├── CycleDetectedError
    │   ├── UnknownParentError
    │   └── DuplicateGroupError
    ├── CapacityError
    └── GroupSetLoadError

Rule evaluation problems (bad regex, non-numeric comparison, invalid rule
shape) are not exceptions: they are recorded as ``RuleEvaluationError``
diagnostics on the classification result and never abort a run.

Example:
    >>> from nodeclass.exceptions import CycleDetectedError
    >>> raise CycleDetectedError(
    ...     message="Cycle detected in group hierarchy",
    ...     cycles=[["a", "b", "a"]],
    ... )
"""

import json
import re
import traceback as tb
from datetime import datetime
from typing import Any, Dict, List, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class NodeClassException(Exception):
    """Base exception for all NodeClass errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "NC_CYCLE_DETECTED_ERROR")
        context: Dictionary with error-specific details
        timestamp: When the error occurred
        traceback_str: Stack at the point the error was created
    """

    ERROR_PREFIX = "NC"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.timestamp = datetime.now()
        self.traceback_str = "".join(tb.format_stack()[:-1])

    def _generate_error_code(self) -> str:
        """Generate error code from the class name.

        Returns:
            Error code like "NC_CYCLE_DETECTED_ERROR"
        """
        class_name = self.__class__.__name__
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', class_name).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary with all error details
        """
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "traceback": self.traceback_str,
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        return f"[{self.error_code}] - {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}')"
        )


# ==============================================================================
# Structural Exceptions
# ==============================================================================

class StructuralError(NodeClassException):
    """The group set itself is defective.

    Structural errors are fatal to a classification run: no node may be
    classified against the offending group set until it is fixed.
    """
    ERROR_PREFIX = "NC_STRUCT"


class CycleDetectedError(StructuralError):
    """The parent hierarchy contains at least one cycle.

    Example:
        >>> raise CycleDetectedError(
        ...     message="Cycle detected in group hierarchy",
        ...     cycles=[["web", "base", "web"]],
        ... )
    """

    def __init__(
        self,
        message: str,
        cycles: Optional[List[List[str]]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize cycle error.

        Args:
            message: Error message
            cycles: Each cycle as a closed path of group ids
            context: Error context
        """
        self.cycles = [list(c) for c in (cycles or [])]
        self.group_ids = sorted({gid for cycle in self.cycles for gid in cycle})
        context = context or {}
        context["cycles"] = self.cycles
        context["group_ids"] = self.group_ids
        super().__init__(message, context=context)


class UnknownParentError(StructuralError):
    """A group references a parent id that is not in the group set."""

    def __init__(
        self,
        message: str,
        missing: Optional[Dict[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize unknown-parent error.

        Args:
            message: Error message
            missing: Mapping of group id -> unknown parent id
            context: Error context
        """
        self.missing = dict(missing or {})
        context = context or {}
        context["missing_parents"] = self.missing
        super().__init__(message, context=context)


class DuplicateGroupError(StructuralError):
    """Two groups in one snapshot share an id."""

    def __init__(
        self,
        message: str,
        group_ids: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.group_ids = sorted(group_ids or [])
        context = context or {}
        context["group_ids"] = self.group_ids
        super().__init__(message, context=context)


# ==============================================================================
# Operational Exceptions
# ==============================================================================

class CapacityError(NodeClassException):
    """A configured capacity limit would be exceeded."""

    def __init__(
        self,
        message: str,
        limit_name: Optional[str] = None,
        limit: Optional[int] = None,
        actual: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize capacity error.

        Args:
            message: Error message
            limit_name: Name of the configuration limit
            limit: Configured limit
            actual: Observed size
            context: Error context
        """
        context = context or {}
        if limit_name:
            context["limit_name"] = limit_name
        if limit is not None:
            context["limit"] = limit
        if actual is not None:
            context["actual"] = actual
        super().__init__(message, context=context)


class GroupSetLoadError(NodeClassException):
    """Group, fact or node definitions could not be loaded."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if path:
            context["path"] = path
        if cause:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(message, context=context)


# ==============================================================================
# Exception Utilities
# ==============================================================================

def format_exception_chain(exc: Exception) -> str:
    """Format exception chain for logging/display.

    Args:
        exc: Exception to format

    Returns:
        Formatted string with full exception chain
    """
    lines = []
    current = exc

    while current is not None:
        if isinstance(current, NodeClassException):
            lines.append(str(current))
            lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")

        current = getattr(current, "__cause__", None)

    return "\n".join(lines)


__all__ = [
    "NodeClassException",
    "StructuralError",
    "CycleDetectedError",
    "UnknownParentError",
    "DuplicateGroupError",
    "CapacityError",
    "GroupSetLoadError",
    "format_exception_chain",
]
