"""
specks — speck document parser

File: src/specks/parsing/parser.py

Purpose
- Convert raw speck markdown into an immutable ``Document``.

What should be included in this file
- Fence-aware line scanning; fenced code is never semantic.
- Recognition of phase header, plan metadata table, decisions/questions,
  step and substep blocks with their bold-labeled fields and checkbox lists.
- Collection of every ``{#anchor}`` token and every cross-reference token.

Functional requirements
- Only unreadable input fails (invalid UTF-8, NUL bytes); every structural
  irregularity is left for the validator.

Non-functional requirements
- Deterministic and pure: same text always yields an equal ``Document``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Final

from specks.constants import (
    FIELD_BEADS_ROOT,
    FIELD_LAST_UPDATED,
    FIELD_OWNER,
    FIELD_STATUS,
    FIELD_TARGET_BRANCH,
    FIELD_TRACKING,
)
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
    Step,
    Substep,
)
from specks.observability import get_logger

_logger = get_logger(__name__)

_FENCE_START_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?P<indent>[ ]{0,3})(?P<marker>`{3,}|~{3,}).*$"
)
_FENCE_CLOSE_RE: Final[re.Pattern[str]] = re.compile(r"^[ ]{0,3}(?P<marker>`{3,}|~{3,})\s*$")
_HEADING_RE: Final[re.Pattern[str]] = re.compile(
    r"^\s{0,3}(?P<hashes>#{1,6})\s+(?P<text>.*?)\s*#*\s*$"
)
_ANCHOR_TOKEN_RE: Final[re.Pattern[str]] = re.compile(r"\{#(?P<name>[^}\s]*)\}")
_TRAILING_ANCHOR_RE: Final[re.Pattern[str]] = re.compile(r"\s*\{#(?P<name>[^}\s]*)\}\s*$")
_STEP_TITLE_RE: Final[re.Pattern[str]] = re.compile(
    r"^Step\s+(?P<number>\d+(?:\.\d+)?)\s*:\s*(?P<title>.*)$", flags=re.IGNORECASE
)
_DECISION_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?:[-*+]\s+)?"
    r"(?:\[(?P<bracket>[DQ]\d+)\]|\*\*\[?(?P<bold>[DQ]\d+)\]?\s*:?\s*\*\*)"
    r"\s*:?\s*(?P<rest>.*)$"
)
_STATUS_TOKEN_RE: Final[re.Pattern[str]] = re.compile(
    r"\s*\((?P<status>[A-Za-z][A-Za-z_-]*)\)\s*$"
)
_BOLD_FIELD_RE: Final[re.Pattern[str]] = re.compile(
    r"^\*\*(?P<label>[^*:]+?)\s*(?::\s*\*\*|\*\*\s*:)\s*(?P<value>.*?)\s*$"
)
_CHECKBOX_RE: Final[re.Pattern[str]] = re.compile(
    r"^\s*[-*+]\s+\[(?P<mark>[ xX])\]\s*(?P<text>.*?)\s*$"
)
_DECISION_REF_RE: Final[re.Pattern[str]] = re.compile(r"\[(?P<id>[DQ]\d+)\]")
_DEFINITION_TOKEN_RE: Final[re.Pattern[str]] = re.compile(
    r"\*\*\[?[DQ]\d+\]?\s*:?\s*\*\*|\[[DQ]\d+\]"
)
_LINK_REF_RE: Final[re.Pattern[str]] = re.compile(r"\]\(#(?P<name>[^)\s]+)\)")
_HASH_REF_RE: Final[re.Pattern[str]] = re.compile(
    r"(?<![\w{&/#])#(?P<name>[A-Za-z0-9][A-Za-z0-9_.-]*[A-Za-z0-9]|[A-Za-z0-9])"
)
_HINT_KEY_RE: Final[re.Pattern[str]] = re.compile(
    r"(?P<key>type|priority|labels|estimate(?:_minutes)?)\s*[=:]\s*", flags=re.IGNORECASE
)
_LIST_SPLIT_RE: Final[re.Pattern[str]] = re.compile(r"[,\s]+")

_METADATA_LABELS: Final[dict[str, str]] = {
    "owner": FIELD_OWNER,
    "status": FIELD_STATUS,
    "target branch": FIELD_TARGET_BRANCH,
    "tracking issue/pr": FIELD_TRACKING,
    "tracking issue": FIELD_TRACKING,
    "tracking pr": FIELD_TRACKING,
    "tracking": FIELD_TRACKING,
    "last updated": FIELD_LAST_UPDATED,
    "beads root": FIELD_BEADS_ROOT,
}
_METADATA_ATTRS: Final[dict[str, str]] = {
    FIELD_OWNER: "owner",
    FIELD_STATUS: "status",
    FIELD_TARGET_BRANCH: "target_branch",
    FIELD_TRACKING: "tracking",
    FIELD_LAST_UPDATED: "last_updated",
    FIELD_BEADS_ROOT: "beads_root",
}
_CHECKBOX_LABELS: Final[dict[str, CheckpointKind]] = {
    "tasks": CheckpointKind.TASK,
    "task": CheckpointKind.TASK,
    "tests": CheckpointKind.TEST,
    "test": CheckpointKind.TEST,
    "checkpoint": CheckpointKind.CHECKPOINT,
    "checkpoints": CheckpointKind.CHECKPOINT,
}
_HINT_LABELS: Final[frozenset[str]] = frozenset({"beads", "bead hints", "beads hints", "hints"})
_EMPTY_DEPENDENCY_VALUES: Final[frozenset[str]] = frozenset({"none", "n/a", "-", "—"})


class ParseError(Exception):
    """Raised when input cannot be scanned as speck text at all."""

    message: str
    line: int | None

    def __init__(self, message: str, *, line: int | None = None) -> None:
        self.message = message
        self.line = line
        prefix = f"line {line}: " if line is not None else ""
        super().__init__(f"{prefix}{message}")


class _Section(StrEnum):
    NONE = "none"
    METADATA = "metadata"
    DECISIONS = "decisions"
    QUESTIONS = "questions"
    STEPS = "steps"


_SECTION_NAMES: Final[dict[str, _Section]] = {
    "plan metadata": _Section.METADATA,
    "metadata": _Section.METADATA,
    "design decisions": _Section.DECISIONS,
    "decisions": _Section.DECISIONS,
    "open questions": _Section.QUESTIONS,
    "questions": _Section.QUESTIONS,
    "execution steps": _Section.STEPS,
}


@dataclass(slots=True)
class _VisibleLine:
    line_number: int
    text: str


@dataclass(slots=True)
class _StepDraft:
    number: str
    title: str
    anchor: str
    line: int
    heading_level: int
    depends_on: list[str] = field(default_factory=list)
    bead_id: str | None = None
    bead_line: int | None = None
    bead_hints: BeadHints | None = None
    commit_message: str | None = None
    references: str | None = None
    references_line: int | None = None
    tasks: list[Checkpoint] = field(default_factory=list)
    tests: list[Checkpoint] = field(default_factory=list)
    checkpoints: list[Checkpoint] = field(default_factory=list)
    substeps: list[_StepDraft] = field(default_factory=list)

    def add_item(self, item: Checkpoint) -> None:
        if item.kind is CheckpointKind.TASK:
            self.tasks.append(item)
        elif item.kind is CheckpointKind.TEST:
            self.tests.append(item)
        else:
            self.checkpoints.append(item)

    def to_substep(self) -> Substep:
        return Substep(
            number=self.number,
            title=self.title,
            anchor=self.anchor,
            line=self.line,
            depends_on=tuple(self.depends_on),
            bead_id=self.bead_id,
            bead_line=self.bead_line,
            bead_hints=self.bead_hints,
            commit_message=self.commit_message,
            references=self.references,
            references_line=self.references_line,
            tasks=tuple(self.tasks),
            tests=tuple(self.tests),
            checkpoints=tuple(self.checkpoints),
        )

    def to_step(self) -> Step:
        return Step(
            number=self.number,
            title=self.title,
            anchor=self.anchor,
            line=self.line,
            depends_on=tuple(self.depends_on),
            bead_id=self.bead_id,
            bead_line=self.bead_line,
            bead_hints=self.bead_hints,
            commit_message=self.commit_message,
            references=self.references,
            references_line=self.references_line,
            tasks=tuple(self.tasks),
            tests=tuple(self.tests),
            checkpoints=tuple(self.checkpoints),
            substeps=tuple(draft.to_substep() for draft in self.substeps),
        )


def parse(text: str | bytes, *, path: str | None = None) -> Document:
    """
    Parse speck text into a ``Document``.

    Raises ``ParseError`` only for input that cannot be scanned: bytes that are
    not valid UTF-8, or text containing NUL characters.
    """

    decoded = _decode(text)
    parser = _SpeckParser(decoded)
    document = parser.run(path=path)
    _logger.debug(
        "speck_parsed",
        path=path,
        steps=len(document.steps),
        anchors=len(document.anchors),
        decisions=len(document.decisions),
        questions=len(document.questions),
    )
    return document


def parse_file(path: str | Path) -> Document:
    """Read and parse a speck file; read failures surface as ``ParseError``."""

    file_path = Path(path)
    try:
        data = file_path.read_bytes()
    except OSError as exc:
        raise ParseError(f"failed to read {file_path}: {exc.strerror or exc}") from exc
    return parse(data, path=str(file_path))


def _decode(text: str | bytes) -> str:
    if isinstance(text, bytes):
        try:
            decoded = text.decode("utf-8")
        except UnicodeDecodeError as exc:
            line = text[: exc.start].count(b"\n") + 1
            raise ParseError("input is not valid UTF-8 text", line=line) from exc
    else:
        decoded = text

    nul_index = decoded.find("\x00")
    if nul_index >= 0:
        raise ParseError(
            "input contains NUL characters (binary content?)",
            line=decoded.count("\n", 0, nul_index) + 1,
        )
    return decoded.removeprefix("\ufeff")


def _visible_lines(lines: list[str]) -> list[_VisibleLine]:
    visible: list[_VisibleLine] = []
    fence: tuple[str, int] | None = None

    for index, raw_line in enumerate(lines, start=1):
        if fence is not None:
            close = _FENCE_CLOSE_RE.match(raw_line)
            if close is not None:
                marker = close.group("marker")
                if marker[0] == fence[0] and len(marker) >= fence[1]:
                    fence = None
            continue

        start = _FENCE_START_RE.match(raw_line)
        if start is not None:
            marker = start.group("marker")
            fence = (marker[0], len(marker))
            continue

        visible.append(_VisibleLine(line_number=index, text=raw_line))

    return visible


class _SpeckParser:
    """Single forward pass over the visible lines of one speck."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._section = _Section.NONE
        self._section_level = 0
        self._step: _StepDraft | None = None
        self._substep: _StepDraft | None = None
        self._checkbox_kind: CheckpointKind | None = None

        self._phase_title: str | None = None
        self._phase_anchor: str | None = None
        self._purpose: str | None = None
        self._metadata: dict[str, str | None] = {}
        self._metadata_lines: dict[str, int] = {}
        self._metadata_line: int | None = None
        self._anchors: list[Anchor] = []
        self._headings: list[Heading] = []
        self._references: list[Reference] = []
        self._decisions: list[Decision] = []
        self._questions: list[Question] = []
        self._steps: list[_StepDraft] = []

    def run(self, *, path: str | None) -> Document:
        for line in _visible_lines([raw.removesuffix("\r") for raw in self._text.split("\n")]):
            self._collect_anchors(line)
            heading = _HEADING_RE.match(line.text)
            if heading is not None:
                self._handle_heading(line, len(heading.group("hashes")), heading.group("text"))
            else:
                self._handle_body(line)

        metadata_values = {
            _METADATA_ATTRS[label]: value for label, value in self._metadata.items()
        }
        return Document(
            raw_text=self._text,
            path=path,
            phase_title=self._phase_title,
            phase_anchor=self._phase_anchor,
            purpose=self._purpose,
            metadata=Metadata(
                line=self._metadata_line,
                field_lines=tuple(self._metadata_lines.items()),
                **metadata_values,
            ),
            anchors=tuple(self._anchors),
            headings=tuple(self._headings),
            references=tuple(self._references),
            decisions=tuple(self._decisions),
            questions=tuple(self._questions),
            steps=tuple(draft.to_step() for draft in self._steps),
        )

    # -- headings ---------------------------------------------------------

    def _handle_heading(self, line: _VisibleLine, level: int, raw_text: str) -> None:
        text, anchor = _split_trailing_anchor(raw_text)
        heading = Heading(level=level, text=text, line=line.line_number, anchor=anchor)
        self._headings.append(heading)

        step_match = _STEP_TITLE_RE.match(text) if level >= 3 else None
        if step_match is not None:
            self._open_step(line, level, step_match, anchor or "")
            return

        if self._try_decision(line, raw_text):
            self._collect_references(line, skip_definition=True)
            return

        self._collect_references(line)
        self._close_blocks_for_heading(level)
        self._checkbox_kind = None

        section = _SECTION_NAMES.get(heading.section_name)
        if section is not None:
            self._section = section
            self._section_level = level
            if section is _Section.METADATA and self._metadata_line is None:
                self._metadata_line = line.line_number
            return

        if level <= self._section_level:
            self._section = _Section.NONE
            self._section_level = 0
        if level == 2 and self._phase_title is None and anchor is not None:
            self._phase_title = text
            self._phase_anchor = anchor

    def _open_step(
        self, line: _VisibleLine, level: int, match: re.Match[str], anchor: str
    ) -> None:
        number = match.group("number")
        draft = _StepDraft(
            number=number,
            title=match.group("title").strip(),
            anchor=anchor,
            line=line.line_number,
            heading_level=level,
        )
        self._checkbox_kind = None

        if "." in number and self._step is not None:
            self._step.substeps.append(draft)
            self._substep = draft
            return

        self._steps.append(draft)
        self._step = draft
        self._substep = None

    def _close_blocks_for_heading(self, level: int) -> None:
        if self._substep is not None and level <= self._substep.heading_level:
            self._substep = None
            self._checkbox_kind = None
        if self._step is not None and level <= self._step.heading_level:
            self._step = None
            self._substep = None
            self._checkbox_kind = None

    def _try_decision(self, line: _VisibleLine, raw_text: str) -> bool:
        match = _DECISION_RE.match(raw_text.strip())
        if match is None:
            return False

        item_id = match.group("bracket") or match.group("bold")
        rest, anchor = _split_trailing_anchor(match.group("rest"))
        status: str | None = None
        status_match = _STATUS_TOKEN_RE.search(rest)
        if status_match is not None:
            status = status_match.group("status").upper()
            rest = rest[: status_match.start()]
        title = rest.strip().rstrip(":").strip()

        if item_id.startswith("D"):
            self._decisions.append(
                Decision(
                    id=item_id, title=title, status=status, line=line.line_number, anchor=anchor
                )
            )
        else:
            self._questions.append(
                Question(
                    id=item_id, title=title, status=status, line=line.line_number, anchor=anchor
                )
            )
        return True

    # -- body lines -------------------------------------------------------

    def _handle_body(self, line: _VisibleLine) -> None:
        stripped = line.text.strip()
        if not stripped:
            return

        if stripped.startswith("|"):
            if self._section is _Section.METADATA:
                self._handle_metadata_row(line, stripped)
            self._collect_references(line)
            return

        if self._section in {_Section.DECISIONS, _Section.QUESTIONS} and self._step is None:
            if self._try_decision(line, stripped):
                self._collect_references(line, skip_definition=True)
                return

        field_match = _BOLD_FIELD_RE.match(stripped)
        if field_match is not None:
            self._handle_field(line, field_match.group("label"), field_match.group("value"))
            return

        checkbox = _CHECKBOX_RE.match(line.text)
        if checkbox is not None:
            self._handle_checkbox(line, checkbox)

        self._collect_references(line)

    def _handle_metadata_row(self, line: _VisibleLine, stripped: str) -> None:
        cells = [cell.strip() for cell in stripped.strip("|").split("|")]
        if len(cells) < 2:
            return
        label = _METADATA_LABELS.get(_clean_label(cells[0]))
        if label is None:
            return
        self._set_metadata(label, cells[1], line.line_number)

    def _set_metadata(self, label: str, raw_value: str, line_number: int) -> None:
        value = _clean_value(raw_value)
        self._metadata[label] = value or None
        self._metadata_lines[label] = line_number

    def _handle_field(self, line: _VisibleLine, raw_label: str, value: str) -> None:
        label = raw_label.strip().lower()
        block = self._substep or self._step

        kind = _CHECKBOX_LABELS.get(label)
        if kind is not None:
            self._checkbox_kind = kind if block is not None else None
            return
        self._checkbox_kind = None

        if label == "depends on":
            targets = _parse_dependencies(value)
            for target in targets:
                self._references.append(
                    Reference(kind=ReferenceKind.DEPENDENCY, target=target, line=line.line_number)
                )
            if block is not None:
                block.depends_on.extend(targets)
            return

        if label == "references":
            self._collect_references(line, hash_refs=True)
            if block is not None:
                block.references = value
                block.references_line = line.line_number
            return

        self._collect_references(line)

        if label == "purpose" and self._purpose is None and self._step is None:
            self._purpose = value or None
            return

        if self._section is _Section.METADATA and block is None:
            metadata_label = _METADATA_LABELS.get(label)
            if metadata_label is not None:
                self._set_metadata(metadata_label, value, line.line_number)
            return

        if block is None:
            return

        if label == "bead":
            block.bead_id = _clean_value(value) or None
            block.bead_line = line.line_number
        elif label in _HINT_LABELS:
            block.bead_hints = _parse_hints(value, line.line_number)
        elif label == "commit":
            block.commit_message = _clean_value(value) or None

    def _handle_checkbox(self, line: _VisibleLine, match: re.Match[str]) -> None:
        block = self._substep or self._step
        if block is None or self._checkbox_kind is None:
            return
        block.add_item(
            Checkpoint(
                checked=match.group("mark") in {"x", "X"},
                text=match.group("text"),
                kind=self._checkbox_kind,
                line=line.line_number,
            )
        )

    # -- tokens -----------------------------------------------------------

    def _collect_anchors(self, line: _VisibleLine) -> None:
        for match in _ANCHOR_TOKEN_RE.finditer(line.text):
            self._anchors.append(Anchor(name=match.group("name"), line=line.line_number))

    def _collect_references(
        self,
        line: _VisibleLine,
        *,
        skip_definition: bool = False,
        hash_refs: bool = False,
    ) -> None:
        text = line.text
        if skip_definition:
            text = _DEFINITION_TOKEN_RE.sub("", text, count=1)

        for match in _DECISION_REF_RE.finditer(text):
            self._references.append(
                Reference(
                    kind=ReferenceKind.DECISION,
                    target=match.group("id"),
                    line=line.line_number,
                )
            )

        anchor_pattern = _HASH_REF_RE if hash_refs else _LINK_REF_RE
        for match in anchor_pattern.finditer(_ANCHOR_TOKEN_RE.sub("", text)):
            self._references.append(
                Reference(
                    kind=ReferenceKind.ANCHOR,
                    target=match.group("name"),
                    line=line.line_number,
                )
            )


def _split_trailing_anchor(text: str) -> tuple[str, str | None]:
    match = _TRAILING_ANCHOR_RE.search(text)
    if match is None:
        return text.strip(), None
    return text[: match.start()].strip(), match.group("name")


def _clean_label(raw: str) -> str:
    return raw.replace("*", "").replace("`", "").strip().rstrip(":").strip().lower()


def _clean_value(raw: str) -> str:
    return raw.strip().strip("`").strip()


def _parse_dependencies(value: str) -> list[str]:
    if "](#" in value:
        return [match.group("name") for match in _LINK_REF_RE.finditer(value)]

    targets: list[str] = []
    for token in _LIST_SPLIT_RE.split(value):
        cleaned = token.strip("`").rstrip(".;").lstrip("#")
        if not cleaned or cleaned.lower() in _EMPTY_DEPENDENCY_VALUES:
            continue
        targets.append(cleaned)
    return targets


def _parse_hints(value: str, line_number: int) -> BeadHints:
    matches = list(_HINT_KEY_RE.finditer(value))
    values: dict[str, str] = {}
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(value)
        key = match.group("key").lower()
        if key.startswith("estimate"):
            key = "estimate"
        values[key] = value[match.end() : end].strip(" ,;`")

    labels_raw = values.get("labels", "")
    labels = tuple(label for label in _LIST_SPLIT_RE.split(labels_raw) if label)
    return BeadHints(
        issue_type=values.get("type") or None,
        priority_text=values.get("priority") or None,
        labels=labels,
        estimate=values.get("estimate") or None,
        line=line_number,
    )


__all__ = ["ParseError", "parse", "parse_file"]
