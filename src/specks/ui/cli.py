"""Command-line interface router for specks."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from specks.config import ConfigLoadError, SpecksConfig, ValidationLevel, load_config
from specks.constants import SPECK_FILE_PREFIX, SPECK_FILE_SUFFIX, SPECKS_DIR
from specks.document.models import Document, StepLike, speck_name_from_path
from specks.main import ExitCode
from specks.observability import configure_logging, get_logger
from specks.parsing import ParseError, parse_file
from specks.ui.render import CLIRenderer, create_renderer
from specks.validation import DependencyGraph, ValidationResult, validate

_logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = ExitCode.FILE_ERROR

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="specks",
        description=(
            "specks — parse and validate speck planning documents.\n\n"
            "Common workflows:\n"
            "  specks validate              Validate every .specks/specks-*.md file\n"
            "  specks validate auth         Validate .specks/specks-auth.md\n"
            "  specks status auth           Show step progress for one speck\n"
            "  specks list                  Summarize all specks in the project\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--project-root",
        default=".",
        help="Project root containing the .specks directory (default: current directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a TOML config file (default: .specks/config.toml if present).",
    )
    common.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Emit machine-readable JSON on stdout.",
    )
    common.add_argument(
        "--log-level",
        default="WARNING",
        help="Minimum level for diagnostic logs on stderr (default: WARNING).",
    )
    common.add_argument(
        "--log-json",
        action="store_true",
        default=False,
        help="Render diagnostic logs as JSON lines.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate -------------------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Validate speck documents",
        description=(
            "Parse and validate speck documents; exits 1 when any file has errors.\n\n"
            "Examples:\n"
            "  specks validate\n"
            "  specks validate .specks/specks-auth.md --strict\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    validate_parser.add_argument(
        "files",
        nargs="*",
        help="Speck files or names (default: all specks in the project).",
    )
    level_group = validate_parser.add_mutually_exclusive_group()
    level_group.add_argument(
        "--level",
        choices=[level.value for level in ValidationLevel],
        default=None,
        help="Validation level (default: from config, normally 'normal').",
    )
    level_group.add_argument(
        "--strict",
        action="store_true",
        default=False,
        help="Shorthand for --level strict.",
    )
    validate_parser.add_argument(
        "--show-info",
        action="store_true",
        default=None,
        help="Include info-level hints in the output.",
    )
    validate_parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        default=False,
        help="Suppress text output; only the exit code reports the result.",
    )
    validate_parser.set_defaults(handler=_cmd_validate)

    # status ---------------------------------------------------------------
    status_parser = subparsers.add_parser(
        "status",
        parents=[common],
        help="Show step completion for one speck",
    )
    status_parser.add_argument("file", help="Speck file or name.")
    status_parser.set_defaults(handler=_cmd_status)

    # list -----------------------------------------------------------------
    list_parser = subparsers.add_parser(
        "list",
        parents=[common],
        help="List specks in the project with status and progress",
    )
    list_parser.set_defaults(handler=_cmd_list)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return ExitCode.FILE_ERROR

    try:
        configure_logging(namespace.log_level, json_output=namespace.log_json)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return ExitCode.CONFIG_ERROR

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_validate(args: argparse.Namespace) -> int:
    project_root = _project_root(args)
    config = _load_project_config(args, project_root)

    level: ValidationLevel | None = None
    if args.strict:
        level = ValidationLevel.STRICT
    elif args.level is not None:
        level = ValidationLevel(args.level)
    validation_config = config.validation_config(level=level, show_info=args.show_info)

    if args.files:
        paths = [_resolve_speck_path(raw, project_root) for raw in args.files]
    else:
        paths = _discover_specks(project_root)

    results: list[tuple[Path, ValidationResult]] = []
    for path in paths:
        document = _load_document(path)
        results.append((path, validate(document, validation_config)))

    has_errors = any(not result.valid for _, result in results)
    _logger.info(
        "validate_finished",
        files=len(results),
        invalid=sum(1 for _, result in results if not result.valid),
        validation_level=validation_config.level.value,
    )

    if args.json:
        _emit_json(_validate_payload(results, project_root, has_errors))
    else:
        renderer = create_renderer(quiet=args.quiet)
        if not results:
            renderer.text("No speck files found to validate")
        for path, result in results:
            _render_validation(renderer, path, result)

    return ExitCode.VALIDATION_FAILED if has_errors else ExitCode.SUCCESS


def _cmd_status(args: argparse.Namespace) -> int:
    project_root = _project_root(args)
    path = _resolve_speck_path(args.file, project_root)
    document = _load_document(path)

    if args.json:
        _emit_json(_status_payload(document, path, project_root))
        return ExitCode.SUCCESS

    renderer = create_renderer()
    done, total = document.completion_counts()
    renderer.text(
        f"{speck_name_from_path(path)}: {document.computed_status().value} "
        f"({done}/{total} items, {document.completion_percentage():.0f}%)"
    )
    if document.phase_title:
        renderer.kv("Phase", document.phase_title)

    if document.steps:
        renderer.section("Steps:")
        for step in document.steps:
            renderer.text(f"  {_step_line(step)}")
            for substep in step.substeps:
                renderer.text(f"    {_step_line(substep)}")

    next_step = document.next_step()
    renderer.text()
    if next_step is None:
        renderer.text("All steps complete")
    else:
        renderer.text(
            f"Next step: Step {next_step.number}: {next_step.title} (#{next_step.anchor})"
        )
    return ExitCode.SUCCESS


def _cmd_list(args: argparse.Namespace) -> int:
    project_root = _project_root(args)
    summaries: list[dict[str, object]] = []
    rows: list[list[str]] = []
    for path in _discover_specks(project_root):
        try:
            document = parse_file(path)
        except ParseError as exc:
            _logger.warning("speck_unreadable", path=str(path), error=str(exc))
            continue
        done, total = document.completion_counts()
        name = speck_name_from_path(path)
        status = document.metadata.status or "unknown"
        updated = document.metadata.last_updated or "unknown"
        summaries.append(
            {
                "name": name,
                "path": _display_path(path, project_root),
                "status": status,
                "progress": {"done": done, "total": total},
                "updated": updated,
            }
        )
        rows.append([name, status, f"{done}/{total}", updated])

    if args.json:
        _emit_json({"command": "list", "status": "ok", "specks": summaries})
        return ExitCode.SUCCESS

    renderer = create_renderer()
    if not rows:
        renderer.text("No specks found")
        return ExitCode.SUCCESS
    renderer.table(["SPECK", "STATUS", "PROGRESS", "UPDATED"], rows, align_right=(2, 3))
    return ExitCode.SUCCESS


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _project_root(args: argparse.Namespace) -> Path:
    return Path(str(args.project_root)).expanduser()


def _load_project_config(args: argparse.Namespace, project_root: Path) -> SpecksConfig:
    try:
        return load_config(args.config_path, project_root=project_root)
    except ConfigLoadError as exc:
        raise CLIError(f"configuration error: {exc}", exit_code=ExitCode.CONFIG_ERROR) from exc


def _load_document(path: Path) -> Document:
    try:
        return parse_file(path)
    except ParseError as exc:
        raise CLIError(f"{path}: {exc}", exit_code=ExitCode.FILE_ERROR) from exc


def _resolve_speck_path(raw: str, project_root: Path) -> Path:
    """Resolve a file argument: as given, then under ``.specks/``, then as a short name."""

    given = Path(raw).expanduser()
    if given.is_absolute():
        return given

    candidates = [
        project_root / given,
        project_root / SPECKS_DIR / given,
        project_root / SPECKS_DIR / f"{SPECK_FILE_PREFIX}{raw}{SPECK_FILE_SUFFIX}",
    ]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return candidates[0]


def _discover_specks(project_root: Path) -> list[Path]:
    specks_dir = project_root / SPECKS_DIR
    if not specks_dir.is_dir():
        raise CLIError(
            f"no {SPECKS_DIR} directory under {project_root}", exit_code=ExitCode.FILE_ERROR
        )
    return sorted(
        path
        for path in specks_dir.glob(f"{SPECK_FILE_PREFIX}*{SPECK_FILE_SUFFIX}")
        if path.is_file()
    )


def _display_path(path: Path, project_root: Path) -> str:
    try:
        return path.relative_to(project_root).as_posix()
    except ValueError:
        return path.as_posix()


def _render_validation(renderer: CLIRenderer, path: Path, result: ValidationResult) -> None:
    name = speck_name_from_path(path)
    errors = result.error_count
    warnings = result.warning_count
    if result.valid and warnings == 0:
        renderer.text(f"{name}: valid")
    else:
        renderer.text(
            f"{name}: {errors} error{'' if errors == 1 else 's'}, "
            f"{warnings} warning{'' if warnings == 1 else 's'}"
        )

    renderer.issues("Errors", result.errors)
    renderer.issues("Warnings", result.warnings)
    renderer.issues("Info", result.infos)
    renderer.text()


def _validate_payload(
    results: Sequence[tuple[Path, ValidationResult]],
    project_root: Path,
    has_errors: bool,
) -> dict[str, object]:
    files: list[dict[str, object]] = []
    issues: list[dict[str, object]] = []
    for path, result in results:
        display = _display_path(path, project_root)
        files.append(
            {
                "path": display,
                "name": speck_name_from_path(path),
                "valid": result.valid,
                "error_count": result.error_count,
                "warning_count": result.warning_count,
            }
        )
        for issue in result.issues:
            issues.append({**issue.to_dict(), "file": display})

    return {
        "command": "validate",
        "status": "error" if has_errors else "ok",
        "files": files,
        "issues": issues,
    }


def _status_payload(document: Document, path: Path, project_root: Path) -> dict[str, object]:
    done, total = document.completion_counts()
    completed = {item.anchor for item in document.iter_steps() if item.anchor and item.is_complete}
    graph = DependencyGraph.from_document(document)
    next_step = document.next_step()

    return {
        "command": "status",
        "name": speck_name_from_path(path),
        "path": _display_path(path, project_root),
        "status": document.computed_status().value,
        "declared_status": document.metadata.status,
        "progress": {
            "done": done,
            "total": total,
            "percentage": round(document.completion_percentage(), 1),
        },
        "steps": [_step_status(step) for step in document.steps],
        "completed_steps": [step.anchor for step in document.completed_steps()],
        "remaining_steps": [step.anchor for step in document.remaining_steps()],
        "next_step": next_step.anchor if next_step is not None else None,
        "ready_steps": list(graph.ready_steps(completed)),
        "bead_mapping": document.bead_mapping(),
        "dependencies": {
            anchor: list(targets) for anchor, targets in document.dependency_map().items()
        },
    }


def _step_status(item: StepLike) -> dict[str, object]:
    payload: dict[str, object] = {
        "anchor": item.anchor,
        "number": item.number,
        "title": item.title,
        "done": item.completed_items,
        "total": item.total_items,
        "complete": item.is_complete,
    }
    substeps = getattr(item, "substeps", None)
    if substeps is not None:
        payload["substeps"] = [_step_status(substep) for substep in substeps]
    return payload


def _step_line(item: StepLike) -> str:
    marker = "[x]" if item.is_complete else "[ ]"
    return (
        f"{marker} Step {item.number}: {item.title} "
        f"({item.completed_items}/{item.total_items})"
    )


__all__ = [
    "CLIError",
    "build_parser",
    "run_cli",
]
