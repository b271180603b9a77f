"""
specks — document model

File: src/specks/document/models.py

Purpose
- Immutable value types for a parsed speck: metadata, anchors, decisions,
  questions, execution steps, substeps and checkbox items.

What should be included in this file
- Frozen dataclasses only; the parser is the sole producer.
- Derived read-only accessors (completion counts, computed status, step
  navigation) used by the validator and CLI.

Functional requirements
- Cross references between steps stay string-keyed (anchor names), never
  object references.

Non-functional requirements
- Structural equality: parsing the same text twice yields equal documents.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import PurePath
from typing import Final

from specks.constants import (
    MAX_BEAD_PRIORITY,
    MIN_BEAD_PRIORITY,
    OPEN_QUESTION_STATUS,
    SPECK_FILE_PREFIX,
    STATUS_ACTIVE,
    STATUS_DONE,
    STATUS_DRAFT,
)

# Outline numbers such as "1.0.5" written before a section title.
_SECTION_NUMBER_RE: Final[re.Pattern[str]] = re.compile(r"^\d+(?:\.\d+)*\.?\s+")


class CheckpointKind(StrEnum):
    """Subsection a checkbox item was listed under."""

    TASK = "task"
    TEST = "test"
    CHECKPOINT = "checkpoint"


class SpeckStatus(StrEnum):
    """Effective lifecycle state of a speck."""

    DRAFT = "draft"
    ACTIVE = "active"
    DONE = "done"


class ReferenceKind(StrEnum):
    """Syntactic origin of a cross reference."""

    DEPENDENCY = "dependency"
    DECISION = "decision"
    ANCHOR = "anchor"


@dataclass(frozen=True, slots=True)
class Anchor:
    """An addressable ``{#name}`` location."""

    name: str
    line: int


@dataclass(frozen=True, slots=True)
class Heading:
    """An ATX heading with its optional inline anchor."""

    level: int
    text: str
    line: int
    anchor: str | None = None

    @property
    def section_name(self) -> str:
        """Lowercased title without its outline number or trailing colon."""
        title = _SECTION_NUMBER_RE.sub("", self.text.strip(), count=1)
        return title.rstrip(":").strip().lower()


@dataclass(frozen=True, slots=True)
class Reference:
    """A token that must resolve to an anchor or a decision/question id."""

    kind: ReferenceKind
    target: str
    line: int


@dataclass(frozen=True, slots=True)
class Metadata:
    """Plan metadata table values; ``None`` means missing or empty."""

    owner: str | None = None
    status: str | None = None
    target_branch: str | None = None
    tracking: str | None = None
    last_updated: str | None = None
    beads_root: str | None = None
    line: int | None = None
    field_lines: tuple[tuple[str, int], ...] = ()

    def line_for(self, label: str) -> int | None:
        """Line of the row for ``label``, else the metadata heading line."""
        for name, line in self.field_lines:
            if name == label:
                return line
        return self.line

    def to_dict(self) -> dict[str, object]:
        return {
            "owner": self.owner,
            "status": self.status,
            "target_branch": self.target_branch,
            "tracking": self.tracking,
            "last_updated": self.last_updated,
            "beads_root": self.beads_root,
        }


@dataclass(frozen=True, slots=True)
class Decision:
    """Design decision entry such as ``[D01] Use TOML (DECIDED)``."""

    id: str
    title: str
    status: str | None
    line: int
    anchor: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "anchor": self.anchor,
            "line": self.line,
        }


@dataclass(frozen=True, slots=True)
class Question:
    """Open question entry such as ``[Q01] Cache size? (OPEN)``."""

    id: str
    title: str
    status: str | None
    line: int
    anchor: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status is None or self.status == OPEN_QUESTION_STATUS

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "anchor": self.anchor,
            "line": self.line,
        }


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """A single ``- [ ]`` / ``- [x]`` item."""

    checked: bool
    text: str
    kind: CheckpointKind
    line: int

    def to_dict(self) -> dict[str, object]:
        return {"checked": self.checked, "text": self.text, "kind": self.kind.value}


@dataclass(frozen=True, slots=True)
class BeadHints:
    """Issue-tracker hints from a ``**Beads:**`` line."""

    issue_type: str | None = None
    priority_text: str | None = None
    labels: tuple[str, ...] = ()
    estimate: str | None = None
    line: int | None = None

    @property
    def priority(self) -> int | None:
        """Priority as an int, or ``None`` when absent or outside 1-4."""
        if self.priority_text is None:
            return None
        try:
            value = int(self.priority_text)
        except ValueError:
            return None
        if MIN_BEAD_PRIORITY <= value <= MAX_BEAD_PRIORITY:
            return value
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.issue_type,
            "priority": self.priority,
            "labels": list(self.labels),
            "estimate": self.estimate,
        }


class _StepBody:
    """Derived accessors shared by steps and substeps."""

    __slots__ = ()

    tasks: tuple[Checkpoint, ...]
    tests: tuple[Checkpoint, ...]
    checkpoints: tuple[Checkpoint, ...]

    @property
    def items(self) -> tuple[Checkpoint, ...]:
        return self.tasks + self.tests + self.checkpoints

    @property
    def total_items(self) -> int:
        return len(self.tasks) + len(self.tests) + len(self.checkpoints)

    @property
    def completed_items(self) -> int:
        return sum(1 for item in self.items if item.checked)


@dataclass(frozen=True, slots=True)
class Substep(_StepBody):
    """A ``Step <n>.<m>`` block nested under a step."""

    number: str
    title: str
    anchor: str
    line: int
    depends_on: tuple[str, ...] = ()
    bead_id: str | None = None
    bead_line: int | None = None
    bead_hints: BeadHints | None = None
    commit_message: str | None = None
    references: str | None = None
    references_line: int | None = None
    tasks: tuple[Checkpoint, ...] = ()
    tests: tuple[Checkpoint, ...] = ()
    checkpoints: tuple[Checkpoint, ...] = ()

    @property
    def is_complete(self) -> bool:
        total = self.total_items
        return total > 0 and self.completed_items == total

    def to_dict(self) -> dict[str, object]:
        return _step_payload(self)


@dataclass(frozen=True, slots=True)
class Step(_StepBody):
    """A top-level ``Step <n>`` block."""

    number: str
    title: str
    anchor: str
    line: int
    depends_on: tuple[str, ...] = ()
    bead_id: str | None = None
    bead_line: int | None = None
    bead_hints: BeadHints | None = None
    commit_message: str | None = None
    references: str | None = None
    references_line: int | None = None
    tasks: tuple[Checkpoint, ...] = ()
    tests: tuple[Checkpoint, ...] = ()
    checkpoints: tuple[Checkpoint, ...] = ()
    substeps: tuple[Substep, ...] = ()

    @property
    def is_complete(self) -> bool:
        """True when the step and its substeps have items and all are checked."""
        total = self.total_items + sum(sub.total_items for sub in self.substeps)
        done = self.completed_items + sum(sub.completed_items for sub in self.substeps)
        return total > 0 and done == total

    def to_dict(self) -> dict[str, object]:
        payload = _step_payload(self)
        payload["substeps"] = [substep.to_dict() for substep in self.substeps]
        return payload


StepLike = Step | Substep


@dataclass(frozen=True, slots=True)
class Document:
    """Root of a parsed speck; a value, never mutated after parsing."""

    raw_text: str
    path: str | None = None
    phase_title: str | None = None
    phase_anchor: str | None = None
    purpose: str | None = None
    metadata: Metadata = field(default_factory=Metadata)
    anchors: tuple[Anchor, ...] = ()
    headings: tuple[Heading, ...] = ()
    references: tuple[Reference, ...] = ()
    decisions: tuple[Decision, ...] = ()
    questions: tuple[Question, ...] = ()
    steps: tuple[Step, ...] = ()

    def iter_steps(self) -> Iterator[StepLike]:
        """Yield every step followed by its substeps, in document order."""
        for step in self.steps:
            yield step
            yield from step.substeps

    def step_by_anchor(self, anchor: str) -> StepLike | None:
        for candidate in self.iter_steps():
            if candidate.anchor == anchor:
                return candidate
        return None

    def completion_counts(self) -> tuple[int, int]:
        """Return ``(completed, total)`` over all steps and substeps."""
        done = 0
        total = 0
        for item in self.iter_steps():
            done += item.completed_items
            total += item.total_items
        return done, total

    def completion_percentage(self) -> float:
        done, total = self.completion_counts()
        if total == 0:
            return 0.0
        return done / total * 100.0

    def computed_status(self) -> SpeckStatus:
        declared = (self.metadata.status or "").strip().lower()
        if declared == STATUS_DRAFT:
            return SpeckStatus.DRAFT
        if declared == STATUS_DONE:
            return SpeckStatus.DONE
        if declared == STATUS_ACTIVE:
            if self.completion_percentage() >= 100.0:
                return SpeckStatus.DONE
            return SpeckStatus.ACTIVE
        return SpeckStatus.DRAFT

    def completed_steps(self) -> tuple[Step, ...]:
        return tuple(step for step in self.steps if step.is_complete)

    def remaining_steps(self) -> tuple[Step, ...]:
        return tuple(step for step in self.steps if not step.is_complete)

    def next_step(self) -> Step | None:
        remaining = self.remaining_steps()
        return remaining[0] if remaining else None

    def bead_mapping(self) -> dict[str, str]:
        """Map step/substep anchors to linked bead ids."""
        return {
            item.anchor: item.bead_id
            for item in self.iter_steps()
            if item.bead_id is not None and item.anchor
        }

    def dependency_map(self) -> dict[str, tuple[str, ...]]:
        return {item.anchor: item.depends_on for item in self.iter_steps() if item.anchor}

    def anchor_names(self) -> frozenset[str]:
        return frozenset(anchor.name for anchor in self.anchors)

    def to_dict(self) -> dict[str, object]:
        done, total = self.completion_counts()
        return {
            "path": self.path,
            "phase_title": self.phase_title,
            "phase_anchor": self.phase_anchor,
            "purpose": self.purpose,
            "metadata": self.metadata.to_dict(),
            "status": self.computed_status().value,
            "progress": {"done": done, "total": total},
            "anchors": [anchor.name for anchor in self.anchors],
            "decisions": [decision.to_dict() for decision in self.decisions],
            "questions": [question.to_dict() for question in self.questions],
            "steps": [step.to_dict() for step in self.steps],
        }


def speck_name_from_path(path: str | PurePath) -> str:
    """Return the short speck name: file stem without the ``specks-`` prefix."""

    stem = PurePath(path).stem
    if stem.startswith(SPECK_FILE_PREFIX) and len(stem) > len(SPECK_FILE_PREFIX):
        return stem[len(SPECK_FILE_PREFIX) :]
    return stem


def _step_payload(step: StepLike) -> dict[str, object]:
    return {
        "number": step.number,
        "title": step.title,
        "anchor": step.anchor,
        "line": step.line,
        "depends_on": list(step.depends_on),
        "bead_id": step.bead_id,
        "bead_hints": step.bead_hints.to_dict() if step.bead_hints is not None else None,
        "commit_message": step.commit_message,
        "references": step.references,
        "tasks": [item.to_dict() for item in step.tasks],
        "tests": [item.to_dict() for item in step.tests],
        "checkpoints": [item.to_dict() for item in step.checkpoints],
        "done": step.completed_items,
        "total": step.total_items,
    }


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
