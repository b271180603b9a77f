"""Executable CLI entrypoint for ``specks``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    """Deterministic process exit-code contract."""

    SUCCESS = 0
    VALIDATION_FAILED = 1
    FILE_ERROR = 2
    INTERNAL_ERROR = 3
    CONFIG_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m specks`` and the ``specks`` console script."""

    try:
        from specks.ui.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        # argparse exits with 2 on usage errors, which maps onto FILE_ERROR.
        return _normalize_exit_code(exc.code)
    except Exception as exc:  # noqa: BLE001 - CLI boundary normalization.
        exit_code = _route_exception(exc)
        _report_failure(exc, exit_code)
        return int(exit_code)


def _normalize_exit_code(raw_code: object) -> int:
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, int):
        try:
            return int(ExitCode(raw_code))
        except ValueError:
            return int(ExitCode.INTERNAL_ERROR)
    if isinstance(raw_code, str) and raw_code.strip():
        _write_stderr(raw_code.strip())
    return int(ExitCode.INTERNAL_ERROR)


def _route_exception(exc: BaseException) -> ExitCode:
    routes = _exception_routes()
    for item in _exception_chain(exc):
        for error_types, exit_code in routes:
            if isinstance(item, error_types):
                return exit_code
    return ExitCode.INTERNAL_ERROR


def _exception_routes() -> tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...]:
    from specks.config import ConfigLoadError, ConfigValidationError
    from specks.parsing import ParseError

    return (
        ((ConfigLoadError, ConfigValidationError), ExitCode.CONFIG_ERROR),
        ((ParseError, FileNotFoundError, IsADirectoryError, PermissionError), ExitCode.FILE_ERROR),
    )


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` then its explicit causes or implicit contexts, once each."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


def _report_failure(exc: BaseException, exit_code: ExitCode) -> None:
    if exit_code is ExitCode.INTERNAL_ERROR:
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        return
    _write_stderr(f"error: {str(exc).strip() or type(exc).__name__}")


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint"]
