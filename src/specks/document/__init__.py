"""Speck document model: immutable value types produced by the parser."""

from specks.document.models import (
    Anchor,
    BeadHints,
    Checkpoint,
    CheckpointKind,
    Decision,
    Document,
    Heading,
    Metadata,
    Question,
    Reference,
    ReferenceKind,
    SpeckStatus,
    Step,
    StepLike,
    Substep,
    speck_name_from_path,
)

__all__ = [
    "Anchor",
    "BeadHints",
    "Checkpoint",
    "CheckpointKind",
    "Decision",
    "Document",
    "Heading",
    "Metadata",
    "Question",
    "Reference",
    "ReferenceKind",
    "SpeckStatus",
    "Step",
    "StepLike",
    "Substep",
    "speck_name_from_path",
]
