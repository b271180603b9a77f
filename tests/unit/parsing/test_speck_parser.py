"""Unit tests for the speck markdown parser."""

from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from specks.document.models import CheckpointKind, ReferenceKind
from specks.parsing import ParseError, parse, parse_file

FIXTURES = Path(__file__).resolve().parents[2] / "fixtures"
VALID_SPECK = FIXTURES / "valid" / "specks-auth.md"

pytestmark = pytest.mark.unit


def _references(document: object, kind: ReferenceKind) -> list[str]:
    return [
        reference.target
        for reference in document.references  # type: ignore[attr-defined]
        if reference.kind is kind
    ]


def test_parse_full_speck_fixture() -> None:
    document = parse_file(VALID_SPECK)

    assert document.path == str(VALID_SPECK)
    assert document.phase_title == "Phase 1.0: Authentication Overhaul"
    assert document.phase_anchor == "phase-auth"
    assert document.purpose == "Replace session cookies with signed tokens."

    metadata = document.metadata
    assert metadata.owner == "Jordan Lee"
    assert metadata.status == "active"
    assert metadata.target_branch == "main"
    assert metadata.tracking == "42"
    assert metadata.last_updated == "2026-01-15"
    assert metadata.beads_root == "bd-auth"
    assert metadata.line_for("Owner") == 11

    assert [(d.id, d.title, d.status, d.anchor) for d in document.decisions] == [
        ("D01", "Use signed tokens", "DECIDED", "d01-signed-tokens")
    ]
    assert [(q.id, q.status) for q in document.questions] == [("Q01", "RESOLVED")]

    assert [step.anchor for step in document.steps] == ["step-0", "step-1"]
    step_0, step_1 = document.steps
    assert step_0.number == "0"
    assert step_0.title == "Add token module"
    assert step_0.bead_id == "bd-auth.1"
    assert step_0.commit_message == "feat(auth): add token module"
    assert step_0.references == "[D01] Use signed tokens, #design-decisions"
    assert (len(step_0.tasks), len(step_0.tests), len(step_0.checkpoints)) == (2, 1, 1)
    assert step_0.is_complete

    assert step_1.depends_on == ("step-0",)
    assert step_1.bead_hints is not None
    assert step_1.bead_hints.issue_type == "task"
    assert step_1.bead_hints.priority == 2
    assert step_1.bead_hints.labels == ("auth", "backend")
    assert step_1.bead_hints.estimate == "30"
    assert [sub.anchor for sub in step_1.substeps] == ["step-1-1"]
    assert step_1.substeps[0].depends_on == ("step-0",)
    assert len(step_1.substeps[0].checkpoints) == 1

    assert document.completion_counts() == (5, 9)


def test_anchors_are_collected_in_document_order_outside_fences() -> None:
    document = parse_file(VALID_SPECK)
    names = [anchor.name for anchor in document.anchors]

    assert names == [
        "phase-auth",
        "plan-metadata",
        "design-decisions",
        "d01-signed-tokens",
        "open-questions",
        "q01-token-lifetime",
        "execution-steps",
        "step-0",
        "step-1",
        "step-1-1",
        "deliverables",
    ]
    assert "not-an-anchor" not in names


def test_references_are_recorded_by_kind() -> None:
    document = parse_file(VALID_SPECK)

    assert _references(document, ReferenceKind.DECISION) == ["D01", "D01", "D01", "Q01"]
    assert _references(document, ReferenceKind.ANCHOR) == [
        "design-decisions",
        "step-0",
        "step-1",
    ]
    assert _references(document, ReferenceKind.DEPENDENCY) == ["step-0", "step-0"]


def test_circular_dependency_scenario_parses_both_steps() -> None:
    text = (
        "#### Step 0: A {#step-0}\n"
        "**Depends on:** #step-1\n"
        "#### Step 1: B {#step-1}\n"
        "**Depends on:** #step-0\n"
    )
    document = parse(text)

    assert [(step.anchor, step.depends_on) for step in document.steps] == [
        ("step-0", ("step-1",)),
        ("step-1", ("step-0",)),
    ]


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("#step-1, #step-2", ("step-1", "step-2")),
        ("step-1 step-2", ("step-1", "step-2")),
        ("`#step-1`", ("step-1",)),
        ("[Step 1](#step-1), [Step 2](#step-2)", ("step-1", "step-2")),
        ("None", ()),
        ("n/a", ()),
        ("-", ()),
        ("", ()),
    ],
)
def test_depends_on_formats(value: str, expected: tuple[str, ...]) -> None:
    document = parse(f"#### Step 3: X {{#step-3}}\n**Depends on:** {value}\n")
    assert document.steps[0].depends_on == expected


def test_empty_document_parses() -> None:
    document = parse("")

    assert document.steps == ()
    assert document.anchors == ()
    assert document.metadata.owner is None
    assert document.completion_percentage() == 0.0


def test_substep_without_parent_becomes_top_level_step() -> None:
    document = parse("##### Step 2.1: Orphan {#step-2-1}\n**Tasks:**\n- [ ] orphan work\n")

    assert [step.number for step in document.steps] == ["2.1"]
    assert document.steps[0].substeps == ()
    assert document.steps[0].total_items == 1


def test_checkboxes_before_a_subsection_are_dropped() -> None:
    text = (
        "#### Step 0: A {#step-0}\n"
        "- [x] stray item\n"
        "**Tasks:**\n"
        "- [ ] real task\n"
        "* [X] star bullet task\n"
        "**Commit:** `chore: x`\n"
        "- [ ] dropped after another field\n"
    )
    step = parse(text).steps[0]

    assert [(item.text, item.checked) for item in step.tasks] == [
        ("real task", False),
        ("star bullet task", True),
    ]
    assert step.tests == ()
    assert step.checkpoints == ()


def test_checkpoint_kind_is_fixed_at_parse_time() -> None:
    text = (
        "#### Step 0: A {#step-0}\n"
        "**Tests:**\n"
        "- [ ] t1\n"
        "**Checkpoints:**\n"
        "- [ ] c1\n"
    )
    step = parse(text).steps[0]

    assert [item.kind for item in step.items] == [CheckpointKind.TEST, CheckpointKind.CHECKPOINT]


def test_non_step_heading_closes_the_open_step() -> None:
    text = (
        "#### Step 0: A {#step-0}\n"
        "**Tasks:**\n"
        "- [ ] inside\n"
        "### Deliverables\n"
        "**Tasks:**\n"
        "- [ ] outside\n"
    )
    step = parse(text).steps[0]
    assert [item.text for item in step.tasks] == ["inside"]


def test_bold_decision_lines_and_unknown_status_tokens() -> None:
    text = (
        "### Design Decisions\n"
        "- **D01:** Use TOML (DECIDED)\n"
        "- [D02] Cache aggressively (maybe) {#d02-cache}\n"
        "### Open Questions\n"
        "[Q01] Which backend?\n"
    )
    document = parse(text)

    assert [(d.id, d.title, d.status, d.anchor) for d in document.decisions] == [
        ("D01", "Use TOML", "DECIDED", None),
        ("D02", "Cache aggressively", "MAYBE", "d02-cache"),
    ]
    assert [(q.id, q.status) for q in document.questions] == [("Q01", None)]
    assert _references(document, ReferenceKind.DECISION) == []


def test_metadata_labels_tolerate_formatting() -> None:
    text = (
        "## Plan Metadata\n"
        "| **Owner** | `casey` |\n"
        "| status | Draft |\n"
        "| Tracking issue | |\n"
        "| Reviewer | someone |\n"
    )
    metadata = parse(text).metadata

    assert metadata.owner == "casey"
    assert metadata.status == "Draft"
    assert metadata.tracking is None
    assert metadata.line_for("Tracking issue/PR") == 4


def test_metadata_rows_outside_metadata_section_are_ignored() -> None:
    metadata = parse("## Other\n| Owner | nobody |\n").metadata
    assert metadata.owner is None


def test_unclosed_fence_extends_to_eof() -> None:
    text = "#### Step 0: A {#step-0}\n~~~\n#### Step 1: Hidden {#step-1}\n"
    document = parse(text)

    assert [step.anchor for step in document.steps] == ["step-0"]
    assert [anchor.name for anchor in document.anchors] == ["step-0"]


def test_invalid_utf8_reports_line() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse(b"line one\nline two \xff\n")

    assert excinfo.value.line == 2
    assert str(excinfo.value).startswith("line 2: ")


def test_nul_characters_are_rejected() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse("ok\n\x00binary")
    assert excinfo.value.line == 2


def test_parse_file_missing_raises_parse_error(tmp_path: Path) -> None:
    with pytest.raises(ParseError, match="failed to read"):
        parse_file(tmp_path / "absent.md")


def test_bytes_with_bom_parse_like_text() -> None:
    text = "#### Step 0: A {#step-0}\n"
    assert parse(("\ufeff" + text).encode("utf-8")) == parse(text)


def test_reparse_of_fixture_is_identical() -> None:
    document = parse_file(VALID_SPECK)
    reparsed = parse(document.raw_text, path=document.path)

    assert reparsed == document
    assert hash(reparsed) == hash(document)


def test_line_numbers_count_newlines_only() -> None:
    document = parse("intro\x0cpage\n## Phase {#dup}\n### Other more {#dup}\n")

    assert [(anchor.name, anchor.line) for anchor in document.anchors] == [
        ("dup", 2),
        ("dup", 3),
    ]


def test_crlf_line_endings_are_stripped() -> None:
    document = parse("intro\r\n#### Step 0: Setup {#step-0}\r\n**Tasks:**\r\n- [x] Done\r\n")

    step = document.steps[0]
    assert (step.title, step.anchor, step.line) == ("Setup", "step-0", 2)
    assert [item.text for item in step.tasks] == ["Done"]


@pytest.mark.parametrize(
    ("heading", "expected"),
    [
        ("### 1.0.5 Execution Steps {#execution-steps}", "execution steps"),
        ("### 2. Plan Metadata:", "plan metadata"),
        ("### Design Decisions", "design decisions"),
    ],
)
def test_section_names_drop_outline_numbers(heading: str, expected: str) -> None:
    assert parse(heading + "\n").headings[0].section_name == expected


_SPECK_FRAGMENTS = st.sampled_from(
    [
        "## Phase {#phase-x}",
        "### Plan Metadata",
        "| Owner | someone |",
        "| Status | active |",
        "### Execution Steps",
        "#### Step 1: One {#step-1}",
        "##### Step 1.1: Sub {#step-1-1}",
        "**Depends on:** #step-1",
        "**Tasks:**",
        "**Tests:**",
        "- [ ] open",
        "- [x] done",
        "**References:** [D01], #step-1",
        "[D01] Decision (DECIDED)",
        "```",
        "~~~",
        "{#}",
        "",
    ]
)


@settings(max_examples=200, deadline=None)
@given(st.text())
def test_parse_never_raises_on_arbitrary_text(text: str) -> None:
    try:
        parse(text)
    except ParseError:
        assert "\x00" in text


@settings(max_examples=200, deadline=None)
@given(st.lists(_SPECK_FRAGMENTS, max_size=30))
def test_reparse_is_idempotent(lines: list[str]) -> None:
    document = parse("\n".join(lines))
    assert parse(document.raw_text) == document
