"""
specks — parser and validator for speck planning documents.

File: src/specks/__init__.py

Purpose
- Package root. Exposes the two core entry points, ``parse`` and
  ``validate``, with the value types they produce.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from specks.config import ValidationConfig, ValidationLevel
from specks.document import (
    Anchor,
    BeadHints,
    Checkpoint,
    CheckpointKind,
    Decision,
    Document,
    Metadata,
    Question,
    SpeckStatus,
    Step,
    Substep,
)
from specks.parsing import ParseError, parse, parse_file
from specks.validation import Issue, Severity, ValidationResult, validate

__version__ = "0.1.0"

__all__ = [
    "Anchor",
    "BeadHints",
    "Checkpoint",
    "CheckpointKind",
    "Decision",
    "Document",
    "Issue",
    "Metadata",
    "ParseError",
    "Question",
    "Severity",
    "SpeckStatus",
    "Step",
    "Substep",
    "ValidationConfig",
    "ValidationLevel",
    "ValidationResult",
    "__version__",
    "parse",
    "parse_file",
    "validate",
]
