"""
specks — speck validator

File: src/specks/validation/validator.py

Purpose
- Run the structural and semantic rule set over a parsed ``Document`` and
  accumulate diagnostics into a ``ValidationResult``.

What should be included in this file
- One private checker per rule family; each appends to a shared collector.
- Severity resolution per validation level (``issues.RULE_SEVERITIES``).
- Dependency cycle detection delegated to ``DependencyGraph``.

Functional requirements
- Never raises for a parsed document; collection never stops early.
- ``valid`` is true iff no Error remains after level mapping.
- Info issues are computed always and dropped from output unless ``show_info``.

Non-functional requirements
- Pure and deterministic: issues are emitted in rule order, then document order.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Final

from specks.config.schema import ValidationConfig
from specks.constants import (
    DECISION_STATUSES,
    FIELD_BEADS_ROOT,
    FIELD_LAST_UPDATED,
    FIELD_OWNER,
    FIELD_STATUS,
    FIELD_TARGET_BRANCH,
    REQUIRED_METADATA_FIELDS,
    REQUIRED_SECTIONS,
    STATUS_DONE,
    STATUS_DRAFT,
    STATUS_VALUES,
)
from specks.document.models import Document, ReferenceKind, Step, StepLike
from specks.observability import get_logger
from specks.validation.dependency_graph import DependencyGraph, format_cycle
from specks.validation.issues import (
    E_CIRCULAR_DEPENDENCY,
    E_DUPLICATE_ANCHOR,
    E_INVALID_ANCHOR,
    E_INVALID_BEAD_ID,
    E_INVALID_STATUS,
    E_MISSING_METADATA,
    E_MISSING_REFERENCES,
    E_MISSING_SECTION,
    E_SELF_DEPENDENCY,
    E_UNRESOLVED_REFERENCE,
    I_COMPLETE_NOT_DONE,
    I_DONE_WITH_UNCHECKED,
    I_OPEN_QUESTIONS,
    W_BEAD_PRIORITY,
    W_DECISION_STATUS,
    W_DUPLICATE_DECISION_ID,
    W_EMPTY_STEP,
    W_NON_STEP_DEPENDENCY,
    W_STEP_ANCHOR,
    W_STEP_NUMBERING,
    W_SUBSTEP_NUMBERING,
    Issue,
    Severity,
    ValidationResult,
    severity_for,
)

_logger = get_logger(__name__)

_ANCHOR_NAME_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9][a-z0-9-]*$")
_BEAD_ID_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9][a-z0-9-]*-[a-z0-9]+(\.[0-9]+)*$")
_STEP_NUMBER_RE: Final[re.Pattern[str]] = re.compile(r"^\d+$")
_SUBSTEP_NUMBER_RE: Final[re.Pattern[str]] = re.compile(r"^(?P<parent>\d+)\.(?P<index>\d+)$")

_METADATA_FIELD_ATTRS: Final[dict[str, str]] = {
    FIELD_OWNER: "owner",
    FIELD_STATUS: "status",
    FIELD_TARGET_BRANCH: "target_branch",
    FIELD_LAST_UPDATED: "last_updated",
}


@dataclass(slots=True)
class _IssueCollector:
    config: ValidationConfig
    issues: list[Issue] = field(default_factory=list)

    def add(
        self,
        code: str,
        message: str,
        *,
        line: int | None = None,
        anchor: str | None = None,
    ) -> None:
        self.issues.append(
            Issue(
                code=code,
                severity=severity_for(code, self.config.level),
                message=message,
                line=line,
                anchor=anchor,
            )
        )


def validate(document: Document, config: ValidationConfig | None = None) -> ValidationResult:
    """
    Validate ``document`` and return every finding.

    ``config`` defaults to ``ValidationConfig()`` (normal level, info hidden,
    bead-id checking off).
    """

    effective = config if config is not None else ValidationConfig()
    collector = _IssueCollector(config=effective)

    _check_sections(document, collector)
    _check_metadata(document, collector)
    _check_step_references(document, collector)
    _check_anchors(document, collector)
    _check_self_dependencies(document, collector)
    _check_reference_resolution(document, collector)
    _check_cycles(document, collector)
    if effective.check_bead_ids:
        _check_bead_ids(document, collector)
    _check_step_numbering(document, collector)
    _check_substep_numbering(document, collector)
    _check_step_anchors(document, collector)
    _check_decisions(document, collector)
    _check_non_step_dependencies(document, collector)
    _check_bead_hints(document, collector)
    _check_empty_steps(document, collector)
    _check_completion(document, collector)

    computed = tuple(collector.issues)
    valid = not any(issue.severity is Severity.ERROR for issue in computed)
    visible = (
        computed
        if effective.show_info
        else tuple(issue for issue in computed if issue.severity is not Severity.INFO)
    )

    _logger.debug(
        "speck_validated",
        path=document.path,
        validation_level=effective.level.value,
        valid=valid,
        errors=sum(1 for issue in computed if issue.severity is Severity.ERROR),
        warnings=sum(1 for issue in computed if issue.severity is Severity.WARNING),
        infos=sum(1 for issue in computed if issue.severity is Severity.INFO),
    )
    return ValidationResult(valid=valid, issues=visible)


# -- structure ---------------------------------------------------------------


def _check_sections(document: Document, collector: _IssueCollector) -> None:
    present = {heading.section_name for heading in document.headings}
    for section in REQUIRED_SECTIONS:
        if section.lower() not in present:
            collector.add(E_MISSING_SECTION, f"Missing required section: {section}")


def _check_metadata(document: Document, collector: _IssueCollector) -> None:
    metadata = document.metadata
    for label in REQUIRED_METADATA_FIELDS:
        value = getattr(metadata, _METADATA_FIELD_ATTRS[label])
        if value is None or not value.strip():
            collector.add(
                E_MISSING_METADATA,
                f"Missing required metadata field: {label}",
                line=metadata.line_for(label),
            )

    status = metadata.status
    if status is not None and status.strip().lower() not in STATUS_VALUES:
        allowed = ", ".join(STATUS_VALUES)
        collector.add(
            E_INVALID_STATUS,
            f"Invalid status '{status}' (expected one of: {allowed})",
            line=metadata.line_for(FIELD_STATUS),
        )


def _check_step_references(document: Document, collector: _IssueCollector) -> None:
    for item in document.iter_steps():
        if item.references is None or not item.references.strip():
            collector.add(
                E_MISSING_REFERENCES,
                f"Step {item.number} is missing a **References:** line",
                line=item.references_line or item.line,
                anchor=item.anchor or None,
            )


# -- anchors and references --------------------------------------------------


def _check_anchors(document: Document, collector: _IssueCollector) -> None:
    for anchor in document.anchors:
        if not _ANCHOR_NAME_RE.match(anchor.name):
            collector.add(
                E_INVALID_ANCHOR,
                f"Invalid anchor format: '{anchor.name}' "
                "(use lowercase letters, digits and hyphens)",
                line=anchor.line,
                anchor=anchor.name or None,
            )

    first_seen: dict[str, int] = {}
    for anchor in document.anchors:
        first_line = first_seen.get(anchor.name)
        if first_line is None:
            first_seen[anchor.name] = anchor.line
            continue
        collector.add(
            E_DUPLICATE_ANCHOR,
            f"Duplicate anchor '{anchor.name}' (first defined on line {first_line})",
            line=anchor.line,
            anchor=anchor.name,
        )


def _check_self_dependencies(document: Document, collector: _IssueCollector) -> None:
    for item in document.iter_steps():
        if item.anchor and item.anchor in item.depends_on:
            collector.add(
                E_SELF_DEPENDENCY,
                f"Step {item.number} depends on itself ({item.anchor})",
                line=item.line,
                anchor=item.anchor,
            )


def _check_reference_resolution(document: Document, collector: _IssueCollector) -> None:
    anchor_names = document.anchor_names()
    item_ids = {decision.id for decision in document.decisions} | {
        question.id for question in document.questions
    }

    for reference in document.references:
        if reference.kind is ReferenceKind.DECISION:
            if reference.target in item_ids:
                continue
            message = f"Unresolved reference: [{reference.target}]"
        elif reference.kind is ReferenceKind.DEPENDENCY:
            if reference.target in anchor_names:
                continue
            message = f"Unresolved dependency: #{reference.target}"
        else:
            if reference.target in anchor_names:
                continue
            message = f"Unresolved reference: #{reference.target}"
        collector.add(E_UNRESOLVED_REFERENCE, message, line=reference.line, anchor=reference.target)


def _check_cycles(document: Document, collector: _IssueCollector) -> None:
    graph = DependencyGraph.from_document(document)
    for cycle in graph.detect_cycles():
        start = document.step_by_anchor(cycle[0])
        collector.add(
            E_CIRCULAR_DEPENDENCY,
            f"Circular dependency detected: {format_cycle(cycle)}",
            line=start.line if start is not None else None,
            anchor=cycle[0],
        )


def _check_bead_ids(document: Document, collector: _IssueCollector) -> None:
    beads_root = document.metadata.beads_root
    if beads_root is not None and not _BEAD_ID_RE.match(beads_root):
        collector.add(
            E_INVALID_BEAD_ID,
            f"Invalid bead id in metadata: '{beads_root}'",
            line=document.metadata.line_for(FIELD_BEADS_ROOT),
        )

    for item in document.iter_steps():
        if item.bead_id is not None and not _BEAD_ID_RE.match(item.bead_id):
            collector.add(
                E_INVALID_BEAD_ID,
                f"Invalid bead id for step {item.number}: '{item.bead_id}'",
                line=item.bead_line or item.line,
                anchor=item.anchor or None,
            )


# -- numbering and style -----------------------------------------------------


def _check_step_numbering(document: Document, collector: _IssueCollector) -> None:
    previous: int | None = None
    for step in document.steps:
        if not _STEP_NUMBER_RE.match(step.number):
            continue
        number = int(step.number)
        if previous is not None and number <= previous:
            collector.add(
                W_STEP_NUMBERING,
                f"Step {step.number} is out of order (follows step {previous})",
                line=step.line,
                anchor=step.anchor or None,
            )
        previous = number


def _check_substep_numbering(document: Document, collector: _IssueCollector) -> None:
    for step in document.steps:
        if not _STEP_NUMBER_RE.match(step.number):
            collector.add(
                W_SUBSTEP_NUMBERING,
                f"Substep {step.number} has no parent step",
                line=step.line,
                anchor=step.anchor or None,
            )
            continue

        previous: int | None = None
        for substep in step.substeps:
            match = _SUBSTEP_NUMBER_RE.match(substep.number)
            if match is None or match.group("parent") != step.number:
                collector.add(
                    W_SUBSTEP_NUMBERING,
                    f"Substep {substep.number} does not match parent step {step.number}",
                    line=substep.line,
                    anchor=substep.anchor or None,
                )
                continue
            index = int(match.group("index"))
            if previous is not None and index <= previous:
                collector.add(
                    W_SUBSTEP_NUMBERING,
                    f"Substep {substep.number} is out of order",
                    line=substep.line,
                    anchor=substep.anchor or None,
                )
            previous = index


def _check_step_anchors(document: Document, collector: _IssueCollector) -> None:
    for item in document.iter_steps():
        expected = _expected_step_anchor(item)
        if not item.anchor:
            collector.add(
                W_STEP_ANCHOR,
                f"Step {item.number} has no anchor (expected {{#{expected}}})",
                line=item.line,
            )
        elif item.anchor != expected:
            collector.add(
                W_STEP_ANCHOR,
                f"Step {item.number} anchor '{item.anchor}' should be '{expected}'",
                line=item.line,
                anchor=item.anchor,
            )


def _check_decisions(document: Document, collector: _IssueCollector) -> None:
    entries = [*document.decisions, *document.questions]
    entries.sort(key=lambda entry: entry.line)

    for entry in entries:
        if entry.status is None:
            collector.add(
                W_DECISION_STATUS,
                f"[{entry.id}] has no status token",
                line=entry.line,
                anchor=entry.anchor,
            )
        elif entry.status not in DECISION_STATUSES:
            collector.add(
                W_DECISION_STATUS,
                f"[{entry.id}] has unrecognized status '{entry.status}'",
                line=entry.line,
                anchor=entry.anchor,
            )

    counts = Counter(entry.id for entry in entries)
    seen: set[str] = set()
    for entry in entries:
        if counts[entry.id] > 1 and entry.id in seen:
            collector.add(
                W_DUPLICATE_DECISION_ID,
                f"Duplicate id [{entry.id}]",
                line=entry.line,
                anchor=entry.anchor,
            )
        seen.add(entry.id)


def _check_non_step_dependencies(document: Document, collector: _IssueCollector) -> None:
    anchor_names = document.anchor_names()
    step_anchors = {item.anchor for item in document.iter_steps() if item.anchor}
    for item in document.iter_steps():
        for dependency in item.depends_on:
            if dependency in anchor_names and dependency not in step_anchors:
                collector.add(
                    W_NON_STEP_DEPENDENCY,
                    f"Step {item.number} depends on #{dependency}, which is not a step",
                    line=item.line,
                    anchor=item.anchor or None,
                )


def _check_bead_hints(document: Document, collector: _IssueCollector) -> None:
    for item in document.iter_steps():
        hints = item.bead_hints
        if hints is None or hints.priority_text is None or hints.priority is not None:
            continue
        collector.add(
            W_BEAD_PRIORITY,
            f"Step {item.number} bead priority '{hints.priority_text}' is not in 1-4",
            line=hints.line or item.line,
            anchor=item.anchor or None,
        )


def _check_empty_steps(document: Document, collector: _IssueCollector) -> None:
    for item in document.iter_steps():
        total = item.total_items
        if isinstance(item, Step):
            total += sum(substep.total_items for substep in item.substeps)
        if total == 0:
            collector.add(
                W_EMPTY_STEP,
                f"Step {item.number} has no checkbox items",
                line=item.line,
                anchor=item.anchor or None,
            )


# -- completion hints --------------------------------------------------------


def _check_completion(document: Document, collector: _IssueCollector) -> None:
    declared = (document.metadata.status or "").strip().lower()
    status_line = document.metadata.line_for(FIELD_STATUS)
    done, total = document.completion_counts()

    if declared == STATUS_DONE and done < total:
        collector.add(
            I_DONE_WITH_UNCHECKED,
            f"Status is done but {total - done} of {total} items are unchecked",
            line=status_line,
        )
    if total > 0 and done == total and declared != STATUS_DONE:
        collector.add(
            I_COMPLETE_NOT_DONE,
            f"All {total} items are checked but status is not done",
            line=status_line,
        )
    if declared in STATUS_VALUES and declared != STATUS_DRAFT:
        for question in document.questions:
            if question.is_open:
                collector.add(
                    I_OPEN_QUESTIONS,
                    f"Open question [{question.id}] remains in a {declared} speck",
                    line=question.line,
                    anchor=question.anchor,
                )


def _expected_step_anchor(item: StepLike) -> str:
    return "step-" + item.number.replace(".", "-")


__all__ = ["validate"]
