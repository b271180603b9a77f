"""
specks — validation diagnostics

File: src/specks/validation/issues.py

Purpose
- Diagnostic value types (``Issue``, ``ValidationResult``) and the table of
  stable issue codes with their severity per validation level.

Functional requirements
- Codes are wire-facing strings and never change meaning between releases.
- Severity is a closed enumeration; invalid states are unrepresentable.

Non-functional requirements
- Deterministic, JSON-friendly export for CLI and CI consumers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from specks.config.schema import ValidationLevel


class Severity(StrEnum):
    """Diagnostic severity."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


# Structural errors.
E_MISSING_SECTION: Final[str] = "E001"
E_MISSING_METADATA: Final[str] = "E002"
E_INVALID_STATUS: Final[str] = "E003"
E_MISSING_REFERENCES: Final[str] = "E004"
E_INVALID_ANCHOR: Final[str] = "E005"
E_DUPLICATE_ANCHOR: Final[str] = "E006"
E_SELF_DEPENDENCY: Final[str] = "E007"
E_UNRESOLVED_REFERENCE: Final[str] = "E010"
E_CIRCULAR_DEPENDENCY: Final[str] = "E011"
E_INVALID_BEAD_ID: Final[str] = "E012"

# Style and consistency warnings.
W_STEP_NUMBERING: Final[str] = "W001"
W_SUBSTEP_NUMBERING: Final[str] = "W002"
W_STEP_ANCHOR: Final[str] = "W003"
W_DECISION_STATUS: Final[str] = "W004"
W_DUPLICATE_DECISION_ID: Final[str] = "W005"
W_NON_STEP_DEPENDENCY: Final[str] = "W006"
W_BEAD_PRIORITY: Final[str] = "W007"
W_EMPTY_STEP: Final[str] = "W008"

# Completion hints.
I_DONE_WITH_UNCHECKED: Final[str] = "I001"
I_COMPLETE_NOT_DONE: Final[str] = "I002"
I_OPEN_QUESTIONS: Final[str] = "I003"


@dataclass(frozen=True, slots=True)
class RuleSeverity:
    """Severity a rule reports at each validation level."""

    lenient: Severity
    normal: Severity
    strict: Severity

    def at(self, level: ValidationLevel) -> Severity:
        if level is ValidationLevel.LENIENT:
            return self.lenient
        if level is ValidationLevel.STRICT:
            return self.strict
        return self.normal


_ALWAYS_ERROR = RuleSeverity(Severity.ERROR, Severity.ERROR, Severity.ERROR)
_ALWAYS_WARNING = RuleSeverity(Severity.WARNING, Severity.WARNING, Severity.WARNING)
_ALWAYS_INFO = RuleSeverity(Severity.INFO, Severity.INFO, Severity.INFO)
_STRICT_ERROR = RuleSeverity(Severity.WARNING, Severity.WARNING, Severity.ERROR)
_LENIENT_WARNING = RuleSeverity(Severity.WARNING, Severity.ERROR, Severity.ERROR)

RULE_SEVERITIES: Final[Mapping[str, RuleSeverity]] = {
    E_MISSING_SECTION: _ALWAYS_ERROR,
    E_MISSING_METADATA: _ALWAYS_ERROR,
    E_INVALID_STATUS: _ALWAYS_ERROR,
    E_MISSING_REFERENCES: _LENIENT_WARNING,
    E_INVALID_ANCHOR: _ALWAYS_ERROR,
    E_DUPLICATE_ANCHOR: _ALWAYS_ERROR,
    E_SELF_DEPENDENCY: _ALWAYS_ERROR,
    E_UNRESOLVED_REFERENCE: _ALWAYS_ERROR,
    E_CIRCULAR_DEPENDENCY: _ALWAYS_ERROR,
    E_INVALID_BEAD_ID: _STRICT_ERROR,
    W_STEP_NUMBERING: _ALWAYS_WARNING,
    W_SUBSTEP_NUMBERING: _ALWAYS_WARNING,
    W_STEP_ANCHOR: _STRICT_ERROR,
    W_DECISION_STATUS: _STRICT_ERROR,
    W_DUPLICATE_DECISION_ID: _STRICT_ERROR,
    W_NON_STEP_DEPENDENCY: _STRICT_ERROR,
    W_BEAD_PRIORITY: _STRICT_ERROR,
    W_EMPTY_STEP: _ALWAYS_WARNING,
    I_DONE_WITH_UNCHECKED: _ALWAYS_INFO,
    I_COMPLETE_NOT_DONE: _ALWAYS_INFO,
    I_OPEN_QUESTIONS: _ALWAYS_INFO,
}


def severity_for(code: str, level: ValidationLevel) -> Severity:
    """Resolve the severity of ``code`` at ``level``; unknown codes are errors."""
    rule = RULE_SEVERITIES.get(code)
    if rule is None:
        return Severity.ERROR
    return rule.at(level)


@dataclass(frozen=True, slots=True)
class Issue:
    """A single validator finding."""

    code: str
    severity: Severity
    message: str
    line: int | None = None
    anchor: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "message": self.message,
            "line": self.line,
            "anchor": self.anchor,
        }

    def __str__(self) -> str:
        location = f"line {self.line}: " if self.line is not None else ""
        return f"{self.code} {self.severity.value}: {location}{self.message}"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of validating one document; ``valid`` is the sole CI gate."""

    valid: bool
    issues: tuple[Issue, ...] = ()

    def by_severity(self, severity: Severity) -> tuple[Issue, ...]:
        return tuple(issue for issue in self.issues if issue.severity is severity)

    def with_code(self, code: str) -> tuple[Issue, ...]:
        return tuple(issue for issue in self.issues if issue.code == code)

    @property
    def errors(self) -> tuple[Issue, ...]:
        return self.by_severity(Severity.ERROR)

    @property
    def warnings(self) -> tuple[Issue, ...]:
        return self.by_severity(Severity.WARNING)

    @property
    def infos(self) -> tuple[Issue, ...]:
        return self.by_severity(Severity.INFO)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def to_dict(self) -> dict[str, object]:
        return {
            "valid": self.valid,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "issues": [issue.to_dict() for issue in self.issues],
        }


__all__ = [
    "E_CIRCULAR_DEPENDENCY",
    "E_DUPLICATE_ANCHOR",
    "E_INVALID_ANCHOR",
    "E_INVALID_BEAD_ID",
    "E_INVALID_STATUS",
    "E_MISSING_METADATA",
    "E_MISSING_REFERENCES",
    "E_MISSING_SECTION",
    "E_SELF_DEPENDENCY",
    "E_UNRESOLVED_REFERENCE",
    "I_COMPLETE_NOT_DONE",
    "I_DONE_WITH_UNCHECKED",
    "I_OPEN_QUESTIONS",
    "RULE_SEVERITIES",
    "W_BEAD_PRIORITY",
    "W_DECISION_STATUS",
    "W_DUPLICATE_DECISION_ID",
    "W_EMPTY_STEP",
    "W_NON_STEP_DEPENDENCY",
    "W_STEP_ANCHOR",
    "W_STEP_NUMBERING",
    "W_SUBSTEP_NUMBERING",
    "Issue",
    "RuleSeverity",
    "Severity",
    "ValidationResult",
    "severity_for",
]
