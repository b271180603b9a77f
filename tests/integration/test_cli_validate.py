"""
specks — CLI integration contracts

File: tests/integration/test_cli_validate.py

Purpose
- Exercise `specks validate`, `status` and `list` against real files in a
  temporary project, checking exit codes, text output and JSON payloads.
- Keep one subprocess smoke run of `python -m specks`.
"""

from __future__ import annotations

import json
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from specks.main import ExitCode, cli_entrypoint
from specks.observability import reset_logging
from specks.ui.cli import run_cli

if TYPE_CHECKING:
    from collections.abc import Iterator

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"
FIXTURES = PROJECT_ROOT / "tests" / "fixtures"

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    reset_logging()


def _project(root: Path, *fixtures: str) -> Path:
    specks_dir = root / ".specks"
    specks_dir.mkdir(parents=True, exist_ok=True)
    for fixture in fixtures:
        source = FIXTURES / fixture
        shutil.copyfile(source, specks_dir / source.name)
    return root


def _json_stdout(capsys: pytest.CaptureFixture[str]) -> dict[str, object]:
    return json.loads(capsys.readouterr().out)


def _run_module(repo_root: Path, *args: str) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    existing_pythonpath = env.get("PYTHONPATH")
    src_pythonpath = str(SRC_PATH)
    env["PYTHONPATH"] = (
        src_pythonpath
        if not existing_pythonpath
        else f"{src_pythonpath}{os.pathsep}{existing_pythonpath}"
    )
    return subprocess.run(
        [sys.executable, "-m", "specks", *args],
        cwd=repo_root,
        text=True,
        capture_output=True,
        check=False,
        env=env,
    )


def test_validate_clean_project_exits_zero(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path, "valid/specks-auth.md")

    exit_code = run_cli(["validate", "--project-root", str(root)])

    assert exit_code == ExitCode.SUCCESS
    assert capsys.readouterr().out.splitlines()[0] == "auth: valid"


def test_validate_numbered_sections_with_generated_config(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path, "valid/specks-numbered.md")
    (root / ".specks" / "config.toml").write_text(
        '[specks]\nvalidation_level = "normal"\n\n'
        '[specks.naming]\nprefix = "specks-"\n\n'
        '[specks.beads]\nenabled = true\nvalidate_bead_ids = true\nbd_path = "bd"\n',
        encoding="utf-8",
    )

    exit_code = run_cli(["validate", "numbered", "--project-root", str(root)])

    assert exit_code == ExitCode.SUCCESS
    assert capsys.readouterr().out.splitlines()[0] == "numbered: valid"


def test_validate_reports_errors_and_exits_one(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path, "valid/specks-auth.md", "invalid/specks-circular.md")

    exit_code = run_cli(["validate", "--project-root", str(root)])

    lines = capsys.readouterr().out.splitlines()
    assert exit_code == ExitCode.VALIDATION_FAILED
    assert "auth: valid" in lines
    assert "circular: 1 error, 0 warnings" in lines
    assert "Errors:" in lines
    assert "  Line 14: Circular dependency detected: step-0 -> step-1 -> step-0" in lines


def test_validate_json_payload(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _project(tmp_path, "invalid/specks-circular.md")

    exit_code = run_cli(["validate", "circular", "--project-root", str(root), "--json"])

    payload = _json_stdout(capsys)
    assert exit_code == ExitCode.VALIDATION_FAILED
    assert payload["command"] == "validate"
    assert payload["status"] == "error"
    assert payload["files"] == [
        {
            "path": ".specks/specks-circular.md",
            "name": "circular",
            "valid": False,
            "error_count": 1,
            "warning_count": 0,
        }
    ]
    assert payload["issues"] == [
        {
            "code": "E011",
            "severity": "error",
            "message": "Circular dependency detected: step-0 -> step-1 -> step-0",
            "line": 14,
            "anchor": "step-0",
            "file": ".specks/specks-circular.md",
        }
    ]


def test_strict_level_turns_warnings_into_failures(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path)
    text = (FIXTURES / "valid" / "specks-auth.md").read_text(encoding="utf-8")
    (root / ".specks" / "specks-auth.md").write_text(
        text.replace(" (DECIDED)", ""), encoding="utf-8"
    )

    normal = run_cli(["validate", "auth", "--project-root", str(root)])
    normal_out = capsys.readouterr().out
    strict = run_cli(["validate", "auth", "--project-root", str(root), "--strict"])
    strict_out = capsys.readouterr().out

    assert normal == ExitCode.SUCCESS
    assert "auth: 0 errors, 1 warning" in normal_out.splitlines()
    assert "  Line 22: [D01] has no status token" in normal_out.splitlines()
    assert strict == ExitCode.VALIDATION_FAILED
    assert "auth: 1 error, 0 warnings" in strict_out.splitlines()


def test_config_level_applies_and_cli_flag_wins(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path, "invalid/specks-bad-anchors.md")
    (root / ".specks" / "config.toml").write_text(
        '[specks]\nvalidation_level = "lenient"\nshow_info = true\n', encoding="utf-8"
    )

    assert run_cli(["validate", "--project-root", str(root), "--json"]) == 1
    lenient = _json_stdout(capsys)
    assert run_cli(["validate", "--project-root", str(root), "--json", "--level", "strict"]) == 1
    strict = _json_stdout(capsys)

    def severity_of(payload: dict[str, object], code: str) -> str:
        issues = payload["issues"]
        assert isinstance(issues, list)
        return next(issue["severity"] for issue in issues if issue["code"] == code)

    assert severity_of(lenient, "W003") == "warning"
    assert severity_of(strict, "W003") == "error"


def test_quiet_validate_prints_nothing(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path, "invalid/specks-missing-owner.md")

    exit_code = run_cli(["validate", "--project-root", str(root), "-q"])

    assert exit_code == ExitCode.VALIDATION_FAILED
    assert capsys.readouterr().out == ""


def test_missing_file_exits_with_file_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path)

    exit_code = run_cli(["validate", "nope.md", "--project-root", str(root)])

    assert exit_code == ExitCode.FILE_ERROR
    assert capsys.readouterr().err.startswith("error: ")


def test_missing_specks_directory_exits_with_file_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = run_cli(["validate", "--project-root", str(tmp_path)])

    assert exit_code == ExitCode.FILE_ERROR
    assert "no .specks directory" in capsys.readouterr().err


def test_invalid_config_exits_with_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path, "valid/specks-auth.md")
    (root / ".specks" / "config.toml").write_text(
        "[specks]\nvalidation_level = 3\n", encoding="utf-8"
    )

    exit_code = run_cli(["validate", "--project-root", str(root)])

    assert exit_code == ExitCode.CONFIG_ERROR
    err = capsys.readouterr().err
    assert "configuration error" in err
    assert "specks.validation_level: expected string, got int" in err


def test_log_json_emits_structured_events_on_stderr(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path, "valid/specks-auth.md")

    exit_code = run_cli(
        ["validate", "--project-root", str(root), "--log-level", "info", "--log-json"]
    )

    captured = capsys.readouterr()
    events = [json.loads(line) for line in captured.err.splitlines() if line.strip()]
    assert exit_code == ExitCode.SUCCESS
    assert [event["event"] for event in events] == ["validate_finished"]
    assert events[0]["files"] == 1
    assert events[0]["invalid"] == 0
    assert events[0]["level"] == "info"
    assert events[0]["validation_level"] == "normal"


def test_status_text_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _project(tmp_path, "valid/specks-auth.md")

    exit_code = run_cli(["status", "auth", "--project-root", str(root)])

    assert exit_code == ExitCode.SUCCESS
    assert capsys.readouterr().out.splitlines() == [
        "auth: active (5/9 items, 56%)",
        "Phase: Phase 1.0: Authentication Overhaul",
        "",
        "Steps:",
        "  [x] Step 0: Add token module (4/4)",
        "  [ ] Step 1: Wire tokens into login (1/3)",
        "    [ ] Step 1.1: Refresh endpoint (0/2)",
        "",
        "Next step: Step 1: Wire tokens into login (#step-1)",
    ]


def test_status_json_payload(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _project(tmp_path, "valid/specks-auth.md")

    exit_code = run_cli(["status", ".specks/specks-auth.md", "--project-root", str(root), "--json"])

    payload = _json_stdout(capsys)
    assert exit_code == ExitCode.SUCCESS
    assert payload["name"] == "auth"
    assert payload["status"] == "active"
    assert payload["declared_status"] == "active"
    assert payload["progress"] == {"done": 5, "total": 9, "percentage": 55.6}
    assert payload["completed_steps"] == ["step-0"]
    assert payload["remaining_steps"] == ["step-1"]
    assert payload["next_step"] == "step-1"
    assert payload["ready_steps"] == ["step-1", "step-1-1"]
    assert payload["bead_mapping"] == {"step-0": "bd-auth.1", "step-1": "bd-auth.2"}
    assert payload["dependencies"] == {
        "step-0": [],
        "step-1": ["step-0"],
        "step-1-1": ["step-0"],
    }


def test_list_table_and_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _project(tmp_path, "valid/specks-auth.md", "invalid/specks-circular.md")

    assert run_cli(["list", "--project-root", str(root)]) == ExitCode.SUCCESS
    lines = capsys.readouterr().out.splitlines()
    assert [line.split() for line in lines] == [
        ["SPECK", "STATUS", "PROGRESS", "UPDATED"],
        ["auth", "active", "5/9", "2026-01-15"],
        ["circular", "draft", "0/2", "2026-02-01"],
    ]

    assert run_cli(["list", "--project-root", str(root), "--json"]) == ExitCode.SUCCESS
    payload = _json_stdout(capsys)
    assert payload["specks"] == [
        {
            "name": "auth",
            "path": ".specks/specks-auth.md",
            "status": "active",
            "progress": {"done": 5, "total": 9},
            "updated": "2026-01-15",
        },
        {
            "name": "circular",
            "path": ".specks/specks-circular.md",
            "status": "draft",
            "progress": {"done": 0, "total": 2},
            "updated": "2026-02-01",
        },
    ]


def test_entrypoint_normalizes_usage_errors(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli_entrypoint(["validate", "--level", "bogus"])

    assert exit_code == ExitCode.FILE_ERROR
    assert "invalid choice" in capsys.readouterr().err


def test_module_entrypoint_subprocess(tmp_path: Path) -> None:
    root = _project(tmp_path, "valid/specks-auth.md", "invalid/specks-missing-owner.md")

    completed = _run_module(root, "validate", "--json")

    assert completed.returncode == ExitCode.VALIDATION_FAILED, completed.stderr
    payload = json.loads(completed.stdout)
    assert [entry["name"] for entry in payload["files"]] == ["auth", "missing-owner"]
    assert [issue["code"] for issue in payload["issues"]] == ["E002"]
