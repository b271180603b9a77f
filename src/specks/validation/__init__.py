"""
specks validation package public API.

Purpose
- Export the validator entry point, diagnostic types and the step
  dependency graph.
"""

from specks.validation.dependency_graph import CycleError, DependencyGraph, format_cycle
from specks.validation.issues import (
    RULE_SEVERITIES,
    Issue,
    RuleSeverity,
    Severity,
    ValidationResult,
    severity_for,
)
from specks.validation.validator import validate

__all__ = [
    "CycleError",
    "DependencyGraph",
    "Issue",
    "RULE_SEVERITIES",
    "RuleSeverity",
    "Severity",
    "ValidationResult",
    "format_cycle",
    "severity_for",
    "validate",
]
